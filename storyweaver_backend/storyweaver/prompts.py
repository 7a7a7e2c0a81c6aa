SUMMARY_SYSTEM_PROMPT = """You are an expert storyteller. Summarize the given cultural or folk story in 2-3 sentences, highlighting the key characters, plot, and cultural significance. Respond in {output_language}."""


TRANSLATING_SUMMARY_SYSTEM_PROMPT = """You are an expert storyteller and translator. Summarize the given cultural or folk story (written in {input_language}) in 2-3 sentences, highlighting the key characters, plot, and cultural significance. Provide your response in {output_language}."""


SCENES_SYSTEM_PROMPT = """Break down this story summary into {count} key visual scenes. For each scene, provide a detailed description suitable for image generation. Focus on visual elements, settings, characters, and actions. Consider the cultural context of {language} storytelling traditions.
Return exactly {count} lines, one scene per line, with no headings."""


TEMPLATE_SUMMARY = """This is a {input_language} cultural story that showcases traditional values and storytelling. The narrative follows a classic folk tale structure with moral lessons embedded throughout, prepared for {output_language} narration.

Original story preview: "{preview}..."

Key elements: cultural significance and traditional values, character development and moral lessons, and rich imagery suitable for visual storytelling."""


SCENE_TEMPLATES = [
    "Opening scene: Traditional {language} village setting with authentic cultural elements and warm lighting",
    "Character introduction: Main protagonist in traditional {language} attire, showing wisdom and kindness",
    "Central conflict: The pivotal story moment with {language} cultural symbolism and dramatic tension",
    "Resolution: Peaceful conclusion with community celebration, {language} cultural authenticity and joy",
]
