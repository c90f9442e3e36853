from src.narrative.domain.models import Attachment, PromptDraft, SFLField, SFLTenor
from src.narrative.infrastructure.prompt_store import InMemoryPromptStore
from src.narrative.services.prompt_library import (
    draft_from_prompt,
    open_prompt,
    recompile,
    save_draft,
    snapshot_version,
)


def _draft(**kwargs):
    base = dict(
        title="Cat tales",
        goal="Write a story about cats",
        field=SFLField(topic="cats"),
        tenor=SFLTenor(target_audience=["kids"]),
        attachments=[Attachment(id="1", name="n.txt", type="text", status="done", analysis="whiskers")],
    )
    base.update(kwargs)
    return PromptDraft(**base)


def test_save_new_prompt_compiles_and_uses_goal_as_description():
    store = InMemoryPromptStore()
    prompt = save_draft(store, _draft())
    assert prompt.description == "Write a story about cats"
    assert prompt.created_at == prompt.updated_at
    assert "### Attachment: n.txt (text)\nwhiskers" in prompt.compiled_prompt
    assert store.get_prompt(prompt.id) is not None


def test_description_falls_back_to_topic():
    prompt = save_draft(InMemoryPromptStore(), _draft(goal=""))
    assert prompt.description == "cats"


def test_save_existing_updates_in_place():
    store = InMemoryPromptStore()
    first = save_draft(store, _draft())
    second = save_draft(store, _draft(title="Renamed", field=SFLField(topic="dogs")), prompt_id=first.id)
    assert second.id == first.id
    assert len(store.list_prompts()) == 1
    assert second.title == "Renamed"
    assert "**Topic:** dogs" in second.compiled_prompt


def test_save_with_unknown_id_creates_it():
    store = InMemoryPromptStore()
    prompt = save_draft(store, _draft(), prompt_id="fixed-id")
    assert prompt.id == "fixed-id"
    assert [p.id for p in store.list_prompts()] == ["fixed-id"]


def test_snapshot_version_appends_history():
    store = InMemoryPromptStore()
    prompt = save_draft(store, _draft())
    snapshot_version(store, prompt.id)
    versioned = snapshot_version(store, prompt.id)
    assert len(versioned.versions) == 2
    assert versioned.versions[0].versions is None
    assert versioned.versions[0].title == "Cat tales"
    assert snapshot_version(store, "missing") is None


def test_draft_round_trip_recompiles_identically():
    store = InMemoryPromptStore()
    prompt = save_draft(store, _draft())
    draft = draft_from_prompt(prompt)
    assert draft.goal == prompt.description
    assert draft.tenor.target_audience == ["kids"]
    assert recompile(prompt) == prompt.compiled_prompt


def test_open_prompt_marks_active_and_fills_missing_compilation():
    store = InMemoryPromptStore()
    prompt = save_draft(store, _draft())
    store.update_prompt(prompt.id, {"compiled_prompt": None})

    opened = open_prompt(store, prompt.id)

    assert store.active_prompt_id == prompt.id
    assert opened.compiled_prompt == prompt.compiled_prompt
    assert open_prompt(store, "missing") is None
