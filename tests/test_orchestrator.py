import json
import threading

import pytest

from scenarioforge.compiler.compiler import CompileOptions
from scenarioforge.errors import GenerationError, RunCancelledError
from scenarioforge.llm.parser import ScenarioGenerator
from scenarioforge.pipeline.orchestrator import Pipeline

LOGIN = {
    "name": "log in with a valid user",
    "steps": [
        {"action": "goto", "target": "/login", "description": "open login page"},
        {"action": "fill", "target": "#user", "data": "alice", "description": "username"},
        {"action": "fill", "target": "#pass", "data": "secret", "description": "password"},
        {"action": "click", "target": "#submit", "description": "submit"},
        {"action": "expect", "target": "#welcome", "description": "welcome banner"},
    ],
}

INCOMPLETE = {
    "name": "search",
    "steps": [{"action": "fill", "target": "#q", "description": "search box"}],
}


def make_pipeline(llm_client, browser, payload, **kwargs):
    generator = ScenarioGenerator(client=llm_client(content=json.dumps(payload)), model="gpt-test")
    return Pipeline(generator, browser, **kwargs)


def test_full_run(llm_client, make_browser, login_page_factory):
    browser = make_browser(login_page_factory)
    result = make_pipeline(llm_client, browser, {"scenarios": [LOGIN]}).run(
        "log in with a valid user", "https://app.test/login", run_id="run_fixed"
    )

    assert result.run_id == "run_fixed"
    assert result.errors == []
    meta = result.generation.metadata
    assert meta.stage == "compiled"
    assert meta.mcp_validation_successful is True
    assert meta.source == "llm+playwright"
    assert meta.model == "gpt-test"
    assert meta.total_time.endswith("s")

    output = result.generation.outputs[0]
    assert output.scenario.id == "run_fixed-1"
    assert len(output.outcomes) == len(output.scenario.steps)
    assert output.scenario.steps[3].target == '[data-testid="login-btn"]'

    compiled = result.compilations[0]
    assert compiled.run_id == "run_fixed"
    assert compiled.ir.suite_id == compiled.artifacts.suite_id
    assert 'page.locator("[data-testid=\\"login-btn\\"]").click()' in compiled.artifacts.test_source
    assert all(p.closed for p in browser.pages)


def test_run_id_is_minted_when_absent(llm_client, make_browser, login_page_factory):
    result = make_pipeline(llm_client, make_browser(login_page_factory), LOGIN).run("x", "https://app.test")
    assert result.run_id.startswith("run_")
    assert result.generation.run_id == result.run_id


def test_navigation_failure_keeps_unvalidated_scenarios(llm_client, make_browser, make_page):
    browser = make_browser(lambda: make_page(goto_error=TimeoutError("Timeout 30000ms exceeded")))
    result = make_pipeline(llm_client, browser, LOGIN).run("x", "https://app.test")

    assert [e.kind for e in result.errors] == ["NavigationError"]
    meta = result.generation.metadata
    assert meta.mcp_validation_successful is False
    assert meta.source == "llm"
    output = result.generation.outputs[0]
    assert output.outcomes == []
    assert output.scenario.steps[3].target == "#submit"
    assert len(result.compilations) == 1
    assert browser.pages[0].closed is True


def test_compilation_error_is_per_scenario(llm_client, make_browser, login_page_factory):
    browser = make_browser(login_page_factory)
    result = make_pipeline(llm_client, browser, [INCOMPLETE, LOGIN]).run("x", "https://app.test")

    assert len(result.compilations) == 1
    assert result.compilations[0].ir.cases[0].name == LOGIN["name"]
    unresolved, error = result.errors
    assert (unresolved.stage, unresolved.kind) == ("validation", "StepResolutionWarning")
    assert unresolved.message.startswith("step 1: target not found")
    assert (error.stage, error.kind) == ("compilation", "CompilationInputError")
    assert error.scenario_id == unresolved.scenario_id == f"{result.run_id}-1"


def test_fixed_file_name_is_numbered_per_scenario(llm_client, make_browser, login_page_factory):
    pipeline = make_pipeline(llm_client, make_browser(login_page_factory), [LOGIN, LOGIN],
                             compile_options=CompileOptions(file_name="test_login.py", suite_id="smoke"))
    result = pipeline.run("x", "https://app.test")
    assert [c.artifacts.test_file_name for c in result.compilations] == ["test_login_1.py", "test_login_2.py"]
    assert {c.artifacts.suite_id for c in result.compilations} == {"smoke"}


def test_generation_errors_propagate(llm_client, make_browser, login_page_factory):
    generator = ScenarioGenerator(client=llm_client(error=ConnectionError("down")))
    pipeline = Pipeline(generator, make_browser(login_page_factory))
    with pytest.raises(GenerationError):
        pipeline.run("x", "https://app.test")


def test_cancelled_run_keeps_finished_stages(llm_client, make_browser, login_page_factory):
    cancel = threading.Event()
    browser = make_browser(login_page_factory, on_open=lambda page: cancel.set())
    result = make_pipeline(llm_client, browser, [LOGIN, LOGIN]).run("x", "https://app.test", cancel_event=cancel)

    assert len(browser.pages) == 1
    assert browser.pages[0].closed is True
    first, second = result.generation.outputs
    assert len(first.outcomes) == len(LOGIN["steps"])
    assert second.outcomes == []
    assert result.compilations == []
    assert [(e.stage, e.kind) for e in result.errors] == [("validation", "RunCancelledError")]
    meta = result.generation.metadata
    assert (meta.stage, meta.mcp_validation_successful) == ("generated", False)


def test_cancel_before_generation_raises(llm_client, make_browser, login_page_factory):
    cancel = threading.Event()
    cancel.set()
    client = llm_client(content=json.dumps(LOGIN))
    pipeline = Pipeline(ScenarioGenerator(client=client), make_browser(login_page_factory))

    with pytest.raises(RunCancelledError):
        pipeline.run("x", "https://app.test", cancel_event=cancel)
    assert client.chat.completions.calls == []


def test_envelope_uses_camel_case_keys(llm_client, make_browser, login_page_factory):
    result = make_pipeline(llm_client, make_browser(login_page_factory), LOGIN).run("x", "https://app.test")
    dumped = result.model_dump(by_alias=True, mode="json")

    assert set(dumped["generation"]["metadata"]) >= {
        "generatedAt", "model", "totalTime", "source", "mcpValidationSuccessful", "stage",
    }
    outcome = dumped["generation"]["outputs"][0]["outcomes"][3]
    assert outcome["finalTarget"] == '[data-testid="login-btn"]'
    assert outcome["strategy"] == "data-testid"
    artifacts = dumped["compilations"][0]["artifacts"]
    assert set(artifacts) == {"testFileName", "suiteId", "pageObjects", "ts"}
    assert dumped["compilations"][0]["ir"]["suiteId"] == artifacts["suiteId"]
