"""
Tests for Built-in Checks and the Check Registry.

============================================================
PURPOSE
============================================================
1. Local checks (required, lengths, matches, one_of)
2. Remote check against a local aiohttp server
3. Registry construction and YAML pipelines
4. Orchestrator integration with built-in checks

============================================================
"""

import asyncio
import re
import pytest
from typing import Any, Awaitable, Callable, Dict, List

import aiohttp.test_utils as aiohttp_testing
from aiohttp import web

from valya import (
    CheckRegistry,
    OrchestratorSettings,
    PipelineLoadError,
    ValidationConfig,
    ValidationFailed,
    ValidationOrchestrator,
    ValidatorCheck,
    load_pipeline,
    matches,
    max_length,
    min_length,
    one_of,
    remote,
    required,
)


# ============================================================
# HELPERS
# ============================================================

async def run_check(check: ValidatorCheck, value: Any) -> None:
    """Invoke a check the way the runner does."""
    await check.check(value, check.params)


async def start_server(
    handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
) -> aiohttp_testing.TestServer:
    """Start a local server with a single POST /validate route."""
    app = web.Application()
    app.router.add_post("/validate", handler)
    server = aiohttp_testing.TestServer(app)
    await server.start_server()
    return server


# ============================================================
# LOCAL CHECK TESTS
# ============================================================

class TestRequired:
    """Tests for the required check."""

    @pytest.mark.parametrize("value", [None, "", "   ", [], {}])
    @pytest.mark.asyncio
    async def test_missing_values_fail(self, value):
        """Test that absent and empty values are rejected."""
        with pytest.raises(ValidationFailed) as exc_info:
            await run_check(required("Field is required"), value)

        assert exc_info.value.message == "Field is required"

    @pytest.mark.parametrize("value", ["hello", 0, False, [1]])
    @pytest.mark.asyncio
    async def test_present_values_pass(self, value):
        """Test that present values, including falsy numbers, pass."""
        await run_check(required(), value)

    def test_params_are_immutable(self):
        """Test that bound params cannot be changed after creation."""
        check = required("x")

        with pytest.raises(TypeError):
            check.params["message"] = "y"


class TestLengthChecks:
    """Tests for min_length and max_length."""

    @pytest.mark.asyncio
    async def test_min_length(self):
        """Test the lower bound with default message."""
        check = min_length(3)

        await run_check(check, "abc")
        with pytest.raises(ValidationFailed) as exc_info:
            await run_check(check, "ab")
        assert exc_info.value.message == "Must be at least 3 characters"

    @pytest.mark.asyncio
    async def test_max_length(self):
        """Test the upper bound with custom message."""
        check = max_length(2, "Too long")

        await run_check(check, "ab")
        with pytest.raises(ValidationFailed) as exc_info:
            await run_check(check, "abc")
        assert exc_info.value.message == "Too long"

    @pytest.mark.asyncio
    async def test_unsized_value_fails(self):
        """Test that values without a length are rejected."""
        with pytest.raises(ValidationFailed):
            await run_check(min_length(1), 42)

    def test_negative_length_rejected(self):
        """Test that a negative bound is a construction error."""
        with pytest.raises(ValueError):
            max_length(-1)


class TestMatches:
    """Tests for the matches check."""

    @pytest.mark.asyncio
    async def test_full_match(self):
        """Test that the whole string must match by default."""
        check = matches(r"[a-z]+", "Lowercase only")

        await run_check(check, "abc")
        with pytest.raises(ValidationFailed) as exc_info:
            await run_check(check, "abc1")
        assert exc_info.value.message == "Lowercase only"

    @pytest.mark.asyncio
    async def test_partial_match(self):
        """Test search semantics when full=False."""
        await run_check(matches(r"\d", full=False), "abc1")

    @pytest.mark.asyncio
    async def test_non_string_fails(self):
        """Test that non-strings never match."""
        with pytest.raises(ValidationFailed):
            await run_check(matches(r".*"), None)

    def test_invalid_pattern_rejected(self):
        """Test that a broken pattern fails at construction."""
        with pytest.raises(re.error):
            matches("(")


class TestOneOf:
    """Tests for the one_of check."""

    @pytest.mark.asyncio
    async def test_choices(self):
        """Test membership and the default message."""
        check = one_of(["red", "green"])

        await run_check(check, "red")
        with pytest.raises(ValidationFailed) as exc_info:
            await run_check(check, "blue")
        assert exc_info.value.message == "Must be one of: red, green"


# ============================================================
# REMOTE CHECK TESTS
# ============================================================

class TestRemote:
    """Tests for the network-backed check."""

    @pytest.mark.asyncio
    async def test_accepted(self):
        """Test that a 2xx answer passes and the value is sent as JSON."""
        received: List[Dict[str, Any]] = []

        async def handler(request: web.Request) -> web.Response:
            received.append(await request.json())
            return web.json_response({"ok": True})

        server = await start_server(handler)
        try:
            await run_check(remote(str(server.make_url("/validate")), field="username"), "alice")
        finally:
            await server.close()

        assert received == [{"username": "alice"}]

    @pytest.mark.asyncio
    async def test_rejected_with_json_message(self):
        """Test that a 4xx answer fails with the body's message."""
        async def handler(request: web.Request) -> web.Response:
            return web.json_response({"message": "Username taken"}, status=409)

        server = await start_server(handler)
        try:
            with pytest.raises(ValidationFailed) as exc_info:
                await run_check(remote(str(server.make_url("/validate"))), "alice")
        finally:
            await server.close()

        assert exc_info.value.message == "Username taken"

    @pytest.mark.asyncio
    async def test_rejected_with_text_body(self):
        """Test that a plain-text 4xx body is used as the message."""
        async def handler(request: web.Request) -> web.Response:
            return web.Response(text="Not allowed", status=422)

        server = await start_server(handler)
        try:
            with pytest.raises(ValidationFailed) as exc_info:
                await run_check(remote(str(server.make_url("/validate"))), "x")
        finally:
            await server.close()

        assert exc_info.value.message == "Not allowed"

    @pytest.mark.asyncio
    async def test_rejected_without_message(self):
        """Test that a 4xx without usable body falls back to the check's message."""
        async def handler(request: web.Request) -> web.Response:
            return web.json_response({"error": "nope"}, status=400)

        server = await start_server(handler)
        try:
            with pytest.raises(ValidationFailed) as exc_info:
                await run_check(remote(str(server.make_url("/validate")), message="Rejected"), "x")
        finally:
            await server.close()

        assert exc_info.value.message == "Rejected"

    @pytest.mark.asyncio
    async def test_server_error_is_unavailable(self):
        """Test that 5xx answers report the service as unavailable."""
        async def handler(request: web.Request) -> web.Response:
            return web.Response(status=503)

        server = await start_server(handler)
        try:
            with pytest.raises(ValidationFailed) as exc_info:
                await run_check(remote(str(server.make_url("/validate")), unavailable_message="Down"), "x")
        finally:
            await server.close()

        assert exc_info.value.message == "Down"

    @pytest.mark.asyncio
    async def test_timeout_is_unavailable(self):
        """Test that a slow service fails with the unavailable message."""
        async def handler(request: web.Request) -> web.Response:
            await asyncio.sleep(1.0)
            return web.json_response({})

        server = await start_server(handler)
        try:
            with pytest.raises(ValidationFailed) as exc_info:
                await run_check(remote(str(server.make_url("/validate")), timeout=0.05), "x")
        finally:
            await server.close()

        assert exc_info.value.message == "Validation service unavailable"

    @pytest.mark.asyncio
    async def test_connection_refused_is_unavailable(self):
        """Test that an unreachable endpoint fails instead of crashing."""
        async def handler(request: web.Request) -> web.Response:
            return web.json_response({})

        server = await start_server(handler)
        url = str(server.make_url("/validate"))
        await server.close()

        with pytest.raises(ValidationFailed) as exc_info:
            await run_check(remote(url, timeout=1.0), "x")

        assert exc_info.value.message == "Validation service unavailable"

    def test_url_required(self):
        """Test that an empty URL is a construction error."""
        with pytest.raises(ValueError):
            remote("")


# ============================================================
# REGISTRY TESTS
# ============================================================

class TestCheckRegistry:
    """Tests for CheckRegistry and load_pipeline."""

    def test_builtins_registered(self):
        """Test that every built-in check is available by name."""
        registry = CheckRegistry()

        assert registry.names() == [
            "matches", "max_length", "min_length", "one_of", "remote", "required",
        ]

    def test_build_preserves_order(self):
        """Test that specs become checks in declared order."""
        pipeline = CheckRegistry().build([
            {"check": "required", "message": "Required"},
            {"check": "min_length", "length": 3},
        ])

        assert [c.name for c in pipeline] == ["required", "min_length"]
        assert pipeline[0].params["message"] == "Required"
        assert pipeline[1].params["length"] == 3

    def test_unknown_check(self):
        """Test that unknown names list the available checks."""
        with pytest.raises(PipelineLoadError) as exc_info:
            CheckRegistry().create("nope")

        assert "required" in exc_info.value.message

    def test_bad_arguments(self):
        """Test that factory argument errors are wrapped."""
        with pytest.raises(PipelineLoadError) as exc_info:
            CheckRegistry().create("min_length", size=3)

        assert isinstance(exc_info.value.original_exception, TypeError)

    def test_entry_without_check_key(self):
        """Test that malformed entries are rejected with their index."""
        with pytest.raises(PipelineLoadError) as exc_info:
            CheckRegistry().build([{"check": "required"}, {"message": "x"}])

        assert "Entry 1" in exc_info.value.message

    def test_custom_factory(self):
        """Test registering and replacing a caller-defined check."""
        async def even(value, params):
            if value % 2:
                raise ValidationFailed(params["message"])

        registry = CheckRegistry(include_builtins=False)
        registry.register("even", lambda message="Must be even": ValidatorCheck(even, {"message": message}))

        with pytest.raises(ValueError):
            registry.register("even", lambda: None)
        registry.register("even", lambda: ValidatorCheck(even, {"message": "odd"}), replace=True)

        assert "even" in registry
        assert registry.create("even").params["message"] == "odd"

    def test_load_pipeline_from_mapping(self, tmp_path):
        """Test loading a YAML file with a validators key."""
        path = tmp_path / "pipeline.yaml"
        path.write_text(
            "validators:\n"
            "  - check: required\n"
            "    message: Field is required\n"
            "  - check: max_length\n"
            "    length: 5\n"
        )

        pipeline = load_pipeline(path)

        assert [c.name for c in pipeline] == ["required", "max_length"]

    def test_load_pipeline_from_list(self, tmp_path):
        """Test loading a YAML file that is a bare list."""
        path = tmp_path / "pipeline.yaml"
        path.write_text("- check: required\n")

        assert len(load_pipeline(path)) == 1

    def test_load_pipeline_missing_file(self, tmp_path):
        """Test that an unreadable file is a load error."""
        with pytest.raises(PipelineLoadError) as exc_info:
            load_pipeline(tmp_path / "missing.yaml")

        assert exc_info.value.source.endswith("missing.yaml")

    def test_load_pipeline_without_validators(self, tmp_path):
        """Test that a file without validators is rejected."""
        path = tmp_path / "pipeline.yaml"
        path.write_text("settings:\n  history_size: 3\n")

        with pytest.raises(PipelineLoadError):
            load_pipeline(path)


# ============================================================
# INTEGRATION TESTS
# ============================================================

class TestBuiltinPipeline:
    """Built-in checks driven through the orchestrator."""

    @pytest.mark.asyncio
    async def test_first_failing_builtin_reported(self):
        """Test that the orchestrator reports the first failing built-in check."""
        states = []
        orchestrator = ValidationOrchestrator(
            ValidationConfig(
                validators=[required("Required"), min_length(3, "Too short"), matches(r"\w+", "Bad")],
                value="",
                on_end=states.append,
            ),
            settings=OrchestratorSettings(),
        )
        orchestrator.mount()

        orchestrator.update(value="ab")
        await orchestrator.wait_idle()
        orchestrator.update(value="abc")
        await orchestrator.wait_idle()

        assert [s.validation_message for s in states] == ["Too short", None]

    @pytest.mark.asyncio
    async def test_remote_check_superseded(self):
        """Test that a slow remote answer for an old value is discarded."""
        release = asyncio.Event()

        async def handler(request: web.Request) -> web.Response:
            body = await request.json()
            if body["value"] == "slow":
                await release.wait()
                return web.json_response({"message": "Taken"}, status=409)
            return web.json_response({})

        server = await start_server(handler)
        try:
            states = []
            orchestrator = ValidationOrchestrator(
                ValidationConfig(
                    validators=[remote(str(server.make_url("/validate")))],
                    value="",
                    on_end=states.append,
                ),
                settings=OrchestratorSettings(),
            )
            orchestrator.mount()

            orchestrator.update(value="slow")
            orchestrator.update(value="fast")
            while not states:
                await asyncio.sleep(0.01)
            release.set()
            await orchestrator.wait_idle()
        finally:
            await server.close()

        assert len(states) == 1
        assert states[0].is_valid is True
        assert orchestrator.is_valid is True
