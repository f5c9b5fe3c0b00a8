"""Integration tests for complete rotations over the in-memory store."""

import asyncio
import json

import pytest

from credrotate.secrets.exceptions import StageConflictError, VerificationFailedError
from credrotate.secrets.memory import InMemorySecretStore
from credrotate.secrets.rotation import RotationStatus, SecretRotator, run_rotation
from credrotate.secrets.types import RotationRequest, RotationStep


class TestRunRotation:
    """Tests for run_rotation."""

    @pytest.mark.asyncio
    async def test_complete_rotation(
        self,
        rotator: SecretRotator,
        store: InMemorySecretStore,
        target,
        secret_id: str,
        placeholder_secret: dict[str, str],
    ) -> None:
        """Test all four steps rotate the password end to end."""
        results = await run_rotation(rotator, secret_id, token="v2")

        assert [r.step for r in results] == list(RotationStep)
        assert all(r.status == RotationStatus.COMPLETED for r in results)
        assert results[-1].from_version_id == "old"

        current = await store.read_by_stage(secret_id, "AWSCURRENT")
        payload = json.loads(current.secret_string)
        assert current.version_id == "v2"
        assert payload["password"] == target.accepted
        assert payload["password"] != placeholder_secret["password"]

    @pytest.mark.asyncio
    async def test_generates_token(self, rotator: SecretRotator, secret_id: str) -> None:
        """Test a token is generated when none is given."""
        results = await run_rotation(rotator, secret_id)

        tokens = {r.token for r in results}
        assert len(tokens) == 1
        assert tokens.pop()

    @pytest.mark.asyncio
    async def test_consecutive_rotations(
        self,
        rotator: SecretRotator,
        store: InMemorySecretStore,
        secret_id: str,
    ) -> None:
        """Test a second rotation starts from the first one's result."""
        await run_rotation(rotator, secret_id, token="v2")
        await run_rotation(rotator, secret_id, token="v3")

        versions = await store.describe_versions(secret_id)
        assert "AWSCURRENT" in versions["v3"]
        assert "AWSPREVIOUS" in versions["v2"]
        assert "old" not in versions

    @pytest.mark.asyncio
    async def test_failed_verification_halts_rotation(
        self,
        rotator: SecretRotator,
        store: InMemorySecretStore,
        target,
        secret_id: str,
    ) -> None:
        """Test finishSecret never runs after testSecret fails."""
        target.fail_verify = ConnectionRefusedError("pg_hba.conf rejects connection")

        with pytest.raises(VerificationFailedError):
            await run_rotation(rotator, secret_id, token="v2")

        current = await store.read_by_stage(secret_id, "AWSCURRENT")
        assert current.version_id == "old"
        pending = await store.read_by_version(secret_id, "v2", "AWSPENDING")
        assert pending.stages == frozenset({"AWSPENDING"})


class TestRedelivery:
    """Tests for repeated and concurrent step delivery."""

    @pytest.mark.asyncio
    async def test_every_step_delivered_twice(
        self,
        rotator: SecretRotator,
        store: InMemorySecretStore,
        target,
        secret_id: str,
    ) -> None:
        """Test at-least-once delivery converges to the same state."""
        for step in RotationStep:
            request = RotationRequest(secret_id=secret_id, token="v2", step=step.value)
            await rotator.handle(request)
            await rotator.handle(request)

        assert target.generated == 1
        assert len(set(target.applied)) == 1
        versions = await store.describe_versions(secret_id)
        assert [v for v, s in versions.items() if "AWSCURRENT" in s] == ["v2"]

    @pytest.mark.asyncio
    async def test_concurrent_finish(
        self,
        rotator: SecretRotator,
        store: InMemorySecretStore,
        secret_id: str,
    ) -> None:
        """Test racing finishSecret calls promote exactly once."""
        for step in ("createSecret", "setSecret", "testSecret"):
            await rotator.handle(RotationRequest(secret_id=secret_id, token="v2", step=step))

        finish = RotationRequest(secret_id=secret_id, token="v2", step="finishSecret")
        outcomes = await asyncio.gather(
            rotator.handle(finish),
            rotator.handle(finish),
            return_exceptions=True,
        )

        completed = [
            o for o in outcomes
            if not isinstance(o, BaseException) and o.status == RotationStatus.COMPLETED
        ]
        assert len(completed) == 1
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                assert isinstance(outcome, StageConflictError)
                assert outcome.retryable is True

        current = await store.read_by_stage(secret_id, "AWSCURRENT")
        assert current.version_id == "v2"

        retried = await rotator.handle(finish)
        assert retried.status == RotationStatus.SKIPPED
