"""Prompt templates for the Gemini calls."""

SEARCH_TERMS_PROMPT = """Generate 3-5 specific search terms that could be used to find images related to this question on Wikimedia. 
Return only the search terms as a comma-separated list, with no other text or explanation:

Question: {question}"""


IMAGE_ANALYSIS_INSTRUCTION = """You are an assistant that helps answer questions using visual aids. 
Examine the provided images and use ONLY the ones that are directly relevant to answering the user's question.
Prioritize images with English text and labels. If an image contains non-English text, either:
1. Only use it if the visual content is clear without needing to understand the text, or
2. Skip it in favor of images with English labels or no text dependency.
Keep in mind the images support the text, so the explanation must also be sufficient without them.

In your response:
1. When inserting an image, include it using triple square brackets like this: [[[filename.png]]]
2. Only include images that directly help explain your answer
3. Always naturally reference each image in your text before showing it (e.g., "As shown in the image below," or "You can see in the following illustration that...")
4. Describe specific elements within images when relevant
5. Make your response feel like a well-written article that integrates visuals with explanatory text
6. Provide a clear, informative response to the user's question if there is no good image, just provide a pure text answer"""


def build_search_terms_prompt(question: str) -> str:
    return SEARCH_TERMS_PROMPT.format(question=question)


def build_image_metadata_block(images) -> str:
    """Filename + description listing the model uses to name placeholders"""
    return '\n\n'.join(
        f"Image filename: {img.title}\nDescription: {img.alt_text}"
        for img in images
    )


def build_answer_prompt(question: str, images) -> str:
    return f"Image metadata:\n{build_image_metadata_block(images)}\n\nUser question: {question}"
