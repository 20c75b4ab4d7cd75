from tests.conftest import FakeVerifier, make_address
from xdeploy.exceptions import VerificationError
from xdeploy.result import ResolvedArtifact
from xdeploy.verification import VerificationStage

TOKEN = ResolvedArtifact(name="Token", contract="Token", address=make_address(1), constructor_args=(5,))
PROXY = ResolvedArtifact(
    name="RateSender",
    contract="RateSender",
    address=make_address(2),
    constructor_args=(make_address(3),),
    implementation=make_address(4),
)


def test_disabled_stage_marks_every_artifact_as_not_attempted():
    outcomes = VerificationStage(verifier=None).run([TOKEN, PROXY])
    assert ["Token", "RateSender"] == [o.artifact_name for o in outcomes]
    assert all(not o.attempted and not o.succeeded for o in outcomes)


def test_verifier_receives_recorded_arguments():
    verifier = FakeVerifier()
    outcomes = VerificationStage(verifier).run([TOKEN, PROXY])
    assert all(o.attempted and o.succeeded for o in outcomes)
    assert [
        ("Token", make_address(1), (5,)),
        ("RateSender", make_address(4), (make_address(3),)),
    ] == verifier.verified


def test_failures_become_outcomes():
    verifier = FakeVerifier(
        failures={
            "Token": VerificationError("already verified"),
            "RateSender": ConnectionError("explorer unavailable"),
        }
    )
    token, proxy = VerificationStage(verifier).run([TOKEN, PROXY])

    assert token.attempted and not token.succeeded
    assert "already verified" == token.error_detail
    assert proxy.attempted and not proxy.succeeded
    assert "explorer unavailable" == proxy.error_detail


def test_reason_falls_back_to_exception_name():
    verifier = FakeVerifier(failures={"Token": KeyError()})
    (outcome,) = VerificationStage(verifier).run([TOKEN])
    assert "KeyError" == outcome.error_detail


def test_empty_artifacts():
    assert [] == VerificationStage(FakeVerifier()).run([])


def test_components_not_deployed_by_the_run_are_not_verified():
    recorded = TOKEN._replace(name="Token[wETH]", deployed=False)
    verifier = FakeVerifier()
    skipped, verified = VerificationStage(verifier).run([recorded, PROXY])

    assert not skipped.attempted
    assert verified.attempted and verified.succeeded
    assert ["RateSender"] == [name for name, _, _ in verifier.verified]
