"""Prompt sent to the vision model with every product image."""

from app.core.models import Category

CATEGORY_LIST = ", ".join(c.value for c in Category)

LISTING_PROMPT = f"""
You are a product listing assistant. Analyze this product image and return only a valid JSON object like:
{{
  "title": "Product Name",
  "description": "Detailed product description",
  "price": 29.99,
  "category": "Electronics",
  "condition": "New"
}}

IMPORTANT RULES:
- Price must ALWAYS be a valid number (never null or string)
- Estimate a reasonable market price in USD
- Category should be one of: {CATEGORY_LIST}
- Condition must be either "New" or "Used"
- DO NOT include any markdown, bullet points, or text outside the JSON block
- Return ONLY the JSON object
"""
