from __future__ import annotations

import logging

import pytest
from resolvelib.structs import State

from dependency_graph_resolver.internal.reporting import (
    DependencyEdge,
    PinnedCandidate,
    ResolutionReporter,
)
from dependency_graph_resolver.model.resolution import VersionRequirementNotSatisfied
from unit.helpers.models_helper import ident, proj, req, ver


def _state(*names: str) -> State:
    mapping = {ident(n): PinnedCandidate(project=proj(n), version=ver("1.0")) for n in names}
    return State(mapping=mapping, criteria={}, backtrack_causes=[])


def test_edge_and_candidate_render_as_requirement_lines():
    assert str(DependencyEdge(identifier=ident("Lib"), requirement=req(">=1"))) == "lib >=1"
    assert str(DependencyEdge(identifier=ident("lib"), requirement=req("*"))) == "lib *"
    assert str(PinnedCandidate(project=proj("lib"), version=ver("2.0"))) == "lib==2.0"


@pytest.mark.parametrize(
    "call, level, message",
    [
        pytest.param(lambda r: r.starting(), logging.INFO, "Starting resolution...", id="starting"),
        pytest.param(lambda r: r.starting_round(3), logging.DEBUG, "Starting round 3", id="starting_round"),
        pytest.param(
            lambda r: r.ending_round(3, _state("a", "b")),
            logging.DEBUG,
            "Ending round 3 (2 pinned)",
            id="ending_round",
        ),
        pytest.param(
            lambda r: r.ending(_state("a")),
            logging.INFO,
            "Resolution complete (1 pinned).",
            id="ending",
        ),
        pytest.param(
            lambda r: r.adding_requirement(
                DependencyEdge(identifier=ident("b"), requirement=req("<2")),
                PinnedCandidate(project=proj("a"), version=ver("1.0")),
            ),
            logging.DEBUG,
            "Adding requirement: b <2 (parent=a==1.0)",
            id="adding_requirement",
        ),
        pytest.param(
            lambda r: r.pinning(PinnedCandidate(project=proj("a"), version=ver("1.0"))),
            logging.DEBUG,
            "Pinning candidate: a==1.0",
            id="pinning",
        ),
        pytest.param(
            lambda r: r.rejecting_candidate(
                VersionRequirementNotSatisfied(ident("d"), req(">=1")), None
            ),
            logging.DEBUG,
            "Unsatisfied requirement: no version of d satisfies >=1",
            id="rejecting_unsatisfied",
        ),
        pytest.param(
            lambda r: r.rejecting_candidate("criterion", "cand"),
            logging.DEBUG,
            "Rejecting candidate: cand (criterion=criterion)",
            id="rejecting_other",
        ),
    ],
)
def test_reporter_logs(caplog, call, level, message):
    caplog.set_level(logging.DEBUG)

    call(ResolutionReporter())

    assert [(r.levelno, r.getMessage()) for r in caplog.records] == [(level, message)]


def test_reporter_root_adding_requirement_has_no_parent(caplog):
    caplog.set_level(logging.DEBUG)

    ResolutionReporter().adding_requirement(
        DependencyEdge(identifier=ident("a"), requirement=req("*")), None
    )

    assert caplog.records[0].getMessage() == "Adding requirement: a * (parent=None)"
