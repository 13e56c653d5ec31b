"""GraphQL documents for the Leonardo web app's generation endpoint."""

CREATE_GENERATION_OPERATION = "CreateSDGenerationJob"
CREATE_GENERATION_QUERY = """mutation CreateSDGenerationJob($arg1: SDGenerationInput!) {
  sdGenerationJob(arg1: $arg1) {
    generationId
    __typename
  }
}"""

STATUS_OPERATION = "GetAIGenerationFeedStatuses"
STATUS_QUERY = """query GetAIGenerationFeedStatuses($where: generations_bool_exp = {}) {
  generations(where: $where) {
    id
    status
    __typename
  }
}"""

FEED_OPERATION = "GetAIGenerationFeed"
FEED_QUERY = """query GetAIGenerationFeed($where: generations_bool_exp = {}, $offset: Int = 0, $limit: Int = 1) {
  generations(
    limit: $limit
    offset: $offset
    order_by: [{createdAt: desc}]
    where: $where
  ) {
    id
    status
    prompt
    negativePrompt
    imageWidth
    imageHeight
    modelId
    createdAt
    generated_images(order_by: [{url: desc}]) {
      id
      url
      nsfw
      likeCount
      __typename
    }
    __typename
  }
}"""

STATUS_COMPLETE = "COMPLETE"
STATUS_FAILED = "FAILED"
STATUS_PENDING = "PENDING"
STATUS_IN_PROGRESS = "IN_PROGRESS"

TERMINAL_STATUSES = (STATUS_COMPLETE, STATUS_FAILED)
IN_FLIGHT_STATUSES = (STATUS_PENDING, STATUS_IN_PROGRESS)
