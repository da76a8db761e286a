"""
Tests for parsing LLM story and character replies
"""
import json

import pytest

from media_studio.exceptions import GenerationFailed
from media_studio.services.story_service import (
    CharacterDetails,
    parse_character_details,
    parse_story_scenes,
    story_title,
)


class TestParseStoryScenes:

    def test_scenes_wrapped_in_object_with_chatter(self):
        output = 'Here is your story:\n{"scenes": [{"text": "A boat leaves the harbour."}]}\nEnjoy!'

        scenes = parse_story_scenes(output, image_style="anime")

        assert len(scenes) == 1
        assert scenes[0].text == "A boat leaves the harbour."
        assert scenes[0].image_prompt == "A boat leaves the harbour. anime style."

    def test_snake_case_image_prompt_and_truncation(self):
        output = json.dumps([
            {"text": "one", "image_prompt": "first"},
            {"text": "two", "image_prompt": "second"},
            {"text": "three", "image_prompt": "third"},
        ])

        scenes = parse_story_scenes(output, max_scenes=2)

        assert [s.image_prompt for s in scenes] == ["first cinematic style.", "second cinematic style."]

    def test_main_character_prefixes_image_prompt(self):
        character = CharacterDetails(main_character="Ko Ko, a fisherman")

        scenes = parse_story_scenes('[{"text": "He casts a net.", "imagePrompt": "net over water"}]', character)

        assert scenes[0].image_prompt == "Ko Ko, a fisherman. net over water cinematic style."

    @pytest.mark.parametrize("output", ["no json here", "[]", '{"title": "x"}', '["just a string"]'])
    def test_malformed_output(self, output):
        with pytest.raises(GenerationFailed):
            parse_story_scenes(output)


class TestCharacterDetails:

    def test_parse_and_prompt_context(self):
        details = parse_character_details('{"mainCharacter": "Nilar", "environment": "Bagan at dawn"}')

        assert details.main_character == "Nilar"
        assert details.secondary_characters == ""
        context = details.prompt_context()
        assert "Main Character: Nilar" in context
        assert "Secondary Characters: none" in context
        assert "Environment: Bagan at dawn" in context

    def test_empty_main_character_adds_no_context(self):
        assert CharacterDetails(environment="forest").prompt_context() == ""


def test_story_title_truncates_long_prompts():
    assert story_title("a very long story prompt about many things") == "Story: a very long story prompt about..."
    assert story_title(" short ") == "Story: short"
