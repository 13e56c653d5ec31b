"""Airtable relay package: list prompts, attach generated images, mark rows done."""
