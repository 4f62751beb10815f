# tests/test_summary.py
import asyncio
import json

import pytest

from conftest import FakeTextGenerator
from tutorhub.domain.assessments.summary import (
    build_summary_prompt,
    generate_lesson_summary,
    parse_summary,
)
from tutorhub.errors import GenerationFailed, MalformedGeneratorOutput
from tutorhub.services.text_generation import (
    GeminiTextGenerator,
    TextGenerationError,
    extract_json_object,
)

FULL = {
    "whatWasLearned": "Fractions",
    "mistakes": "Adding denominators",
    "strengths": "Focus",
    "practiceTasks": "Worksheet 3",
}


def test_prompt_includes_notes_and_details():
    prompt = build_summary_prompt("Covered fractions", subject="Maths", student_name="Sam", duration=45)
    assert "Covered fractions" in prompt
    assert "- Subject: Maths" in prompt
    assert "- Duration: 45 minutes" in prompt
    assert '"whatWasLearned", "mistakes", "strengths", "practiceTasks"' in prompt


def test_parse_summary_trims_fields():
    summary = parse_summary(dict(FULL, strengths="  Focus \n"))
    assert summary.strengths == "Focus"


@pytest.mark.parametrize("field", list(FULL))
def test_each_field_is_required(field):
    with pytest.raises(MalformedGeneratorOutput):
        parse_summary({k: v for k, v in FULL.items() if k != field})
    with pytest.raises(MalformedGeneratorOutput):
        parse_summary(dict(FULL, **{field: "   "}))


def test_extract_json_from_fenced_reply():
    reply = "Here you go:\n```json\n" + json.dumps(FULL) + "\n```\nHope this helps!"
    assert extract_json_object(reply) == FULL


@pytest.mark.parametrize("reply", ["", "no json here", "{not: valid json}"])
def test_extract_json_rejects_garbage(reply):
    with pytest.raises(MalformedGeneratorOutput):
        extract_json_object(reply)


def test_generate_lesson_summary(summary_reply):
    generator = FakeTextGenerator([summary_reply])
    summary = asyncio.run(generate_lesson_summary(generator, "Covered linear equations"))
    assert summary.whatWasLearned.startswith("Solving linear equations")
    assert "Covered linear equations" in generator.prompts[0]


@pytest.mark.parametrize(
    "reply",
    [
        json.dumps({"whatWasLearned": "only one field"}),
        "I could not summarise this session.",
        TextGenerationError("AI service unreachable"),
    ],
)
def test_summary_failures_become_generation_failed(reply):
    with pytest.raises(GenerationFailed) as exc:
        asyncio.run(generate_lesson_summary(FakeTextGenerator([reply]), "notes"))
    assert exc.value.code == "generation_failed"


def test_summary_timeout_fails_closed(summary_reply):
    generator = FakeTextGenerator([summary_reply], delay=1.0)
    with pytest.raises(GenerationFailed):
        asyncio.run(generate_lesson_summary(generator, "notes", timeout=0.01))


def test_gemini_without_api_key_is_not_configured():
    with pytest.raises(TextGenerationError) as exc:
        asyncio.run(GeminiTextGenerator(api_key="").generate("hello"))
    assert "GEMINI_API_KEY" in str(exc.value)
