import pytest

from questionnaire_api.core.saga import Saga


def test_steps_run_in_order_and_share_results():
    calls = []
    saga = Saga("demo")
    saga.step("a", lambda: calls.append("a") or 1)
    saga.step("b", lambda: saga.results["a"] + 1)
    results = saga.run()
    assert calls == ["a"]
    assert results == {"a": 1, "b": 2}


def test_failure_undoes_completed_steps_in_reverse_and_reraises():
    undone = []

    def boom():
        raise RuntimeError("step c failed")

    saga = (
        Saga("demo")
        .step("a", lambda: "A", undone.append)
        .step("b", lambda: "B", undone.append)
        .step("c", boom, undone.append)
    )
    with pytest.raises(RuntimeError, match="step c failed"):
        saga.run()
    assert undone == ["B", "A"]


def test_undo_failure_does_not_mask_original_error():
    undone = []

    def bad_undo(_):
        raise ValueError("undo broke")

    def boom():
        raise KeyError("original")

    saga = Saga("demo").step("a", lambda: 1, undone.append).step("b", lambda: 2, bad_undo).step("c", boom)
    with pytest.raises(KeyError):
        saga.run()
    assert undone == [1]
