"""
AI feature: Prompt templates for text summarization and image analysis.

Both prompts ask the model to answer with JSON only; replies are cleaned of
markdown code fences before parsing (see service.clean_model_output).
"""

LENGTH_INSTRUCTIONS = {
    "short": "a very short summary of 2-3 sentences",
    "medium": "a medium-length summary in a single paragraph",
    "long": "a detailed summary of 2-3 paragraphs",
}


def build_summarize_prompt(text: str, summary_length: str = "medium") -> str:
    """Build the summarization prompt for the requested length tier."""
    instruction = LENGTH_INSTRUCTIONS.get(summary_length, LENGTH_INSTRUCTIONS["medium"])

    return f"""Summarize the text below. The summary should be {instruction}.

Summarization rules:
- Keep the main topics and important points
- Remove unnecessary details
- Write fluent, easy-to-read prose in the language of the text
- Keep an objective tone
- Preserve the main message of the original text

Text to summarize:
"{text}"

Answer ONLY in the following JSON format:

{{
  "originalLength": {len(text)},
  "summary": "Summary text (String)",
  "keyPoints": ["Key point 1", "Key point 2", "Key point 3 (Array of Strings)"],
  "summaryLength": "{summary_length}"
}}

Output only the requested JSON, with no other text."""


def build_image_analysis_prompt(user_prompt: str) -> str:
    """Build the image analysis prompt around the user's question."""
    return f"""Analyze this image and give a detailed description that answers the user's question or request.

User's question/request: "{user_prompt}"

Analysis rules:
- Describe what you see in detail
- Focus on the user's question
- Identify colors, objects, people and activities
- Comment on the visual composition
- If there is text in the image, read and explain it
- Comment on image quality and technical characteristics

Answer ONLY in the following JSON format:

{{
  "description": "General description of the image (String)",
  "detailedAnalysis": "Detailed analysis focused on the user's question (String)",
  "objects": ["Object 1", "Object 2", "Object 3 (Array of Strings)"],
  "colors": ["Color 1", "Color 2", "Color 3 (Array of Strings)"],
  "textInImage": "Text found in the image (String, empty string if none)",
  "mood": "Overall mood/atmosphere of the image (String)",
  "technicalNotes": "Technical characteristics such as resolution and quality (String)"
}}

Output only the requested JSON, with no other text."""
