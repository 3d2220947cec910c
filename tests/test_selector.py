"""Tests for interactive context selection."""

from __future__ import annotations

from pathlib import Path

import pytest

from kubectl_config_cleanup.errors import SelectionError
from kubectl_config_cleanup.kubeconfig import NamedContext
from kubectl_config_cleanup.selector import (
    context_preview,
    parse_selection_token,
    select_contexts,
)


def _ctx(name: str, cluster: str = "c1", user: str = "u1") -> NamedContext:
    return NamedContext(
        name=name,
        cluster=cluster,
        user=user,
        namespace="",
        definition={"cluster": cluster, "user": user},
        source=Path("/tmp/kubeconfig"),
    )


CONTEXTS = [_ctx("prod-eks"), _ctx("staging-eks"), _ctx("kind-local")]


def _answers(*values):
    answers = iter(values)

    def _input() -> str:
        value = next(answers)
        if isinstance(value, BaseException):
            raise value
        return value

    return _input


# --- parse_selection_token ---


@pytest.mark.parametrize(
    ("token", "expected"),
    [
        ("1", "prod-eks"),
        ("3", "kind-local"),
        ("staging-eks", "staging-eks"),
        ("KIND-LOCAL", "kind-local"),
        ("stag", "staging-eks"),
    ],
)
def test_parse_selection_token_matches(token, expected):
    assert parse_selection_token(token, CONTEXTS).name == expected


@pytest.mark.parametrize("token", ["0", "4", "eks", "missing", ""])
def test_parse_selection_token_rejects(token):
    assert parse_selection_token(token, CONTEXTS) is None


# --- select_contexts ---


def test_select_by_index_and_name():
    selected = select_contexts(CONTEXTS, input_func=_answers("1, kind-local 1"))
    assert selected == ["prod-eks", "kind-local"]


def test_select_all():
    selected = select_contexts(CONTEXTS, input_func=_answers("all"))
    assert selected == ["prod-eks", "staging-eks", "kind-local"]


@pytest.mark.parametrize("answer", ["", "q", "QUIT", "exit", " , "])
def test_abort_returns_none(answer):
    assert select_contexts(CONTEXTS, input_func=_answers(answer)) is None


@pytest.mark.parametrize("exc", [EOFError(), KeyboardInterrupt()])
def test_interrupt_returns_none(exc, capsys):
    assert select_contexts(CONTEXTS, input_func=_answers(exc)) is None
    assert "Operation cancelled" in capsys.readouterr().err


def test_invalid_selection_reprompts(capsys):
    selected = select_contexts(CONTEXTS, input_func=_answers("9 nope", "2"))

    assert selected == ["staging-eks"]
    assert "Invalid selection(s): 9, nope" in capsys.readouterr().err


def test_preview_then_select(capsys):
    selected = select_contexts(CONTEXTS, input_func=_answers("?2", "2"))

    assert selected == ["staging-eks"]
    err = capsys.readouterr().err
    assert "cluster: c1" in err


def test_terminal_failure_raises_selection_error():
    with pytest.raises(SelectionError):
        select_contexts(CONTEXTS, input_func=_answers(OSError("bad tty")))


def test_no_contexts_returns_none(capsys):
    assert select_contexts([], input_func=_answers()) is None
    assert "No contexts found" in capsys.readouterr().err


def test_context_preview_renders_definition():
    ctx = NamedContext(
        name="a",
        cluster="c1",
        user="u1",
        namespace="kube-system",
        definition={"cluster": "c1", "user": "u1", "namespace": "kube-system"},
        source=Path("/tmp/kubeconfig"),
    )
    assert context_preview(ctx) == "cluster: c1\nuser: u1\nnamespace: kube-system\n"


def test_loose_match_confirmed(capsys):
    selected = select_contexts(CONTEXTS, input_func=_answers("stag", "y"))

    assert selected == ["staging-eks"]
    assert "stag -> staging-eks" in capsys.readouterr().err


def test_loose_match_declined_reprompts():
    selected = select_contexts(CONTEXTS, input_func=_answers("KIND-LOCAL", "n", "3"))
    assert selected == ["kind-local"]


def test_loose_match_confirmation_interrupted():
    assert select_contexts(CONTEXTS, input_func=_answers("stag", EOFError())) is None


def test_preview_shows_source_path_verbatim(capsys):
    ctx = NamedContext(
        name="a",
        cluster="c1",
        user="u1",
        namespace="",
        definition={"cluster": "c1"},
        source=Path("/tmp/[prod]/kubeconfig"),
    )

    assert select_contexts([ctx], input_func=_answers("?1", "q")) is None
    assert "/tmp/[prod]/kubeconfig" in capsys.readouterr().err
