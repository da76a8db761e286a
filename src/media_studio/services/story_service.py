"""
Story Service - turns a one-line story idea into scenes for script-to-video

The LLM is asked for JSON. Replies are parsed into typed scenes and rejected
when they are not a list of scenes with narrative text.
"""
import json
import logging
import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from ..exceptions import GenerationFailed, InvalidInput

logger = logging.getLogger(__name__)

MAX_STORY_SCENES = 10
DEFAULT_IMAGE_STYLE = "cinematic"

STORY_SYSTEM_PROMPT = (
    "You write short illustrated stories. Reply with JSON only, no commentary "
    "and no markdown."
)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

# camelCase keys are what the model usually answers with
_CHARACTER_KEYS = {
    "main_character": ("mainCharacter", "main_character"),
    "secondary_characters": ("secondaryCharacters", "secondary_characters"),
    "environment": ("environment",),
    "style_notes": ("styleNotes", "style_notes"),
}


@dataclass
class CharacterDetails:
    main_character: str = ""
    secondary_characters: str = ""
    environment: str = ""
    style_notes: str = ""

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)

    def prompt_context(self) -> str:
        if not self.main_character:
            return ""
        return (
            f"Main Character: {self.main_character}\n"
            f"Secondary Characters: {self.secondary_characters or 'none'}\n"
            f"Environment: {self.environment or 'unspecified'}\n"
            f"Style: {self.style_notes or 'unspecified'}\n\n"
        )


@dataclass
class StoryScene:
    text: str
    image_prompt: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def extract_json(output: str) -> Any:
    """Decode the JSON value in an LLM reply, tolerating code fences and text around it"""
    cleaned = _CODE_FENCE.sub("", output.strip())
    try:
        return json.loads(cleaned)
    except ValueError:
        pass

    for opener, closer in (("[", "]"), ("{", "}")):
        start, end = cleaned.find(opener), cleaned.rfind(closer)
        if start != -1 and end > start:
            try:
                return json.loads(cleaned[start:end + 1])
            except ValueError:
                continue

    raise GenerationFailed(
        "The story generator did not return valid JSON",
        details={"output": output[:500]},
    )


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return ", ".join(str(v) for v in value if v)
    return str(value).strip()


def parse_character_details(output: str) -> CharacterDetails:
    data = extract_json(output)
    if not isinstance(data, dict):
        raise GenerationFailed("The character template is not a JSON object", details={"output": output[:500]})

    values = {}
    for field_name, keys in _CHARACTER_KEYS.items():
        values[field_name] = next((_as_text(data[k]) for k in keys if k in data), "")
    return CharacterDetails(**values)


def parse_story_scenes(
    output: str,
    character: Optional[CharacterDetails] = None,
    image_style: str = DEFAULT_IMAGE_STYLE,
    max_scenes: int = MAX_STORY_SCENES,
) -> List[StoryScene]:
    """
    Parse the LLM's scene list

    Accepts a bare array or {"scenes": [...]}. Every scene needs narrative
    `text`; a missing image prompt falls back to that text. Image prompts
    get the main character and the image style so scenes stay consistent.
    """
    data = extract_json(output)
    if isinstance(data, dict) and isinstance(data.get("scenes"), list):
        data = data["scenes"]
    if not isinstance(data, list) or not data:
        raise GenerationFailed("The story generator did not return a list of scenes", details={"output": output[:500]})

    main_character = character.main_character if character else ""
    scenes = []
    for i, raw in enumerate(data[:max_scenes], start=1):
        if not isinstance(raw, dict):
            raise GenerationFailed(f"Scene {i} of the generated story is not an object")
        text = _as_text(raw.get("text"))
        if not text:
            raise GenerationFailed(f"Scene {i} of the generated story has no text")
        image_prompt = _as_text(raw.get("imagePrompt") or raw.get("image_prompt")) or text
        if main_character:
            image_prompt = f"{main_character}. {image_prompt}"
        scenes.append(StoryScene(text=text, image_prompt=f"{image_prompt} {image_style} style."))
    return scenes


def story_title(story_prompt: str) -> str:
    prompt = story_prompt.strip()
    return f"Story: {prompt[:30]}{'...' if len(prompt) > 30 else ''}"


class StoryService:
    """Story and character generation through a fal LLM; consumes no credits"""

    def __init__(self, fal_client, poller, cancel_event=None):
        self.fal_client = fal_client
        self.poller = poller
        self.cancel_event = cancel_event

    async def _complete(self, prompt: str) -> str:
        return await self.fal_client.completion(
            prompt, self.poller, system_prompt=STORY_SYSTEM_PROMPT, cancel_event=self.cancel_event,
        )

    async def generate_character_template(self, story_prompt: str) -> CharacterDetails:
        if not story_prompt or not story_prompt.strip():
            raise InvalidInput("Please enter a story prompt first")

        prompt = (
            f'Create detailed character descriptions for a story about: "{story_prompt}". '
            "Format as a JSON object with these fields: "
            "mainCharacter, secondaryCharacters, environment, styleNotes"
        )
        details = parse_character_details(await self._complete(prompt))
        logger.info("Generated character template for story prompt")
        return details

    async def generate_story(
        self,
        story_prompt: str,
        scene_count: int = 4,
        character: Optional[CharacterDetails] = None,
        image_style: str = DEFAULT_IMAGE_STYLE,
    ) -> List[StoryScene]:
        if not story_prompt or not story_prompt.strip():
            raise InvalidInput("Please enter a story prompt")
        if not 1 <= scene_count <= MAX_STORY_SCENES:
            raise InvalidInput(f"A story can have between 1 and {MAX_STORY_SCENES} scenes")
        image_style = (image_style or DEFAULT_IMAGE_STYLE).strip()

        context = character.prompt_context() if character else ""
        prompt = (
            f'{context}Create a {scene_count}-scene story about: "{story_prompt}".\n'
            "Format as a JSON array of scenes, each with:\n"
            "text: scene narrative with character actions/dialogue\n"
            f"imagePrompt: detailed visual description for {image_style} style"
        )
        scenes = parse_story_scenes(await self._complete(prompt), character, image_style, max_scenes=scene_count)
        logger.info(f"Generated a {len(scenes)}-scene story")
        return scenes
