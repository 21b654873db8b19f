"""Tests for multi-phase memory retrieval."""

import pytest
from eideus.models import FaceType
from eideus.retrieval import (
    cosine_similarity,
    direct_score,
    keyword_score,
    query_lattice,
    read_tags,
)

from conftest import add_node


def test_cosine_of_vector_with_itself():
    assert cosine_similarity([0.3, -1.2, 4.0], [0.3, -1.2, 4.0]) == pytest.approx(1.0)


def test_cosine_with_zero_vector():
    assert cosine_similarity([1.0, 2.0], [0.0, 0.0]) == 0.0


def test_cosine_length_mismatch():
    assert cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0]) == 0.0
    assert cosine_similarity(None, [1.0]) == 0.0


def test_keyword_whole_query_match():
    assert keyword_score("The ORC raised his axe", "orc raised") == 1.0


def test_keyword_fraction_of_significant_words():
    # "axe" is too short to count; 1 of 2 significant words match
    assert keyword_score("The orc raised his axe", "raised lantern axe") == 0.5


def test_keyword_without_significant_words():
    assert keyword_score("The orc raised his axe", "the axe") == 0.0
    assert keyword_score("", "anything") == 0.0


def test_read_tags_accepts_lists_and_legacy_strings():
    assert read_tags(["Combat", " Trade "]) == ["Combat", "Trade"]
    assert read_tags("Combat, Betrayal") == ["Combat", "Betrayal"]
    assert read_tags("") == []
    assert read_tags(None) == []


def test_empty_lattice_returns_nothing(lattice, registry):
    assert query_lattice("hello", [1.0, 0.0], lattice, registry) == []


def test_results_are_bounded_positive_and_sorted(lattice, registry):
    for i in range(8):
        add_node(
            lattice,
            registry,
            f"I ask about the harbor {i}",
            f"The harbor master shrugs {i}",
            [1.0, float(i)],
            tags=[f"tag{i % 3}"],
        )
    add_node(lattice, registry, "unrelated", "nothing here", [0.0, 0.0])

    results = query_lattice("harbor", [1.0, 0.0], lattice, registry)

    assert len(results) <= 3
    assert all(r.relevance > 0 for r in results)
    scores = [r.relevance for r in results]
    assert scores == sorted(scores, reverse=True)


def test_non_positive_scores_are_dropped(lattice, registry):
    add_node(lattice, registry, "hello there", "general kenobi", [0.0, 1.0])

    assert query_lattice("xyz", [1.0, 0.0], lattice, registry) == []


def test_ties_keep_lattice_order(lattice, registry):
    first = add_node(lattice, registry, "first visit", "same", [1.0, 0.0])
    second = add_node(lattice, registry, "second visit", "same", [1.0, 0.0])

    results = query_lattice("qqq", [1.0, 0.0], lattice, registry)

    assert [r.node for r in results] == [first, second]


def test_result_carries_summary_and_tags(lattice, registry):
    add_node(
        lattice,
        registry,
        "I duel the captain",
        "Sparks fly",
        [1.0, 0.0],
        tags=["Combat"],
        scene="Duel on the docks",
    )

    result = query_lattice("duel", [1.0, 0.0], lattice, registry)[0]

    assert result.summary == "Duel on the docks"
    assert result.tags == ["Combat"]


def test_missing_registry_data_is_null(lattice, registry):
    lattice.append({FaceType.BOTTOM: "0xmissing-3", FaceType.TOP: "0xmissing-4"})
    add_node(lattice, registry, "a real turn", "real output", [1.0, 0.0])

    results = query_lattice("real", [1.0, 0.0], lattice, registry)

    assert len(results) == 1
    assert results[0].node.coordinate == (1, 0, 0)


def test_summary_fallback(lattice, registry):
    node = add_node(lattice, registry, "walk", "north", [1.0, 0.0])
    bare = lattice.append({k: v for k, v in node.faces.items() if k is not FaceType.TOP})

    results = query_lattice("qqq", [1.0, 0.0], lattice, registry)

    assert results[1].node == bare
    assert results[1].summary == "Memory Node"


def test_entanglement_boosts_shared_tags(lattice, registry):
    query = [1.0, 0.0, 0.0]
    node1 = add_node(lattice, registry, "I sharpen my blade", "The whetstone sings", [0.0, 0.0, 1.0], tags=["combat"])
    node2 = add_node(lattice, registry, "I strike the traitor", "He falls", [1.0, 0.1, 0.0], tags=["betrayal", "combat"])
    node3 = add_node(lattice, registry, "I haggle for rope", "The merchant sighs", [0.5, 0.0, 1.0], tags=["trade"])

    direct = {n: direct_score(n, "combat", query, registry) for n in (node1, node2, node3)}
    direct_order = [n for n in sorted(direct, key=direct.get, reverse=True) if direct[n] > 0]

    results = query_lattice("combat", query, lattice, registry)
    final = {r.node: r.relevance for r in results}
    boost = {n: final[n] - direct[n] for n in final}

    # node 2 matches the query best; node 1 only matches thematically
    assert direct_order == [node2, node3]
    assert [r.node for r in results] == [node2, node3, node1]
    assert boost[node2] > boost[node3]
    assert boost[node1] == pytest.approx(0.1)
    assert boost[node2] == pytest.approx(0.2)


def test_entanglement_reorders_against_direct_phase(lattice, registry):
    query = [1.0, 0.0]
    add_node(lattice, registry, "I strike the traitor", "He falls", [1.0, 0.0], tags=["betrayal", "combat"])
    for i in range(4):
        add_node(lattice, registry, f"Skirmish {i}", "Steel rings", [1.0, 0.0], tags=["combat"])
    brawl = add_node(lattice, registry, "A tavern brawl", "Chairs fly", [0.1, 1.0], tags=["combat"])
    market = add_node(lattice, registry, "Market day", "Coins change hands", [0.3, 1.0], tags=["trade"])

    assert direct_score(market, "fight", query, registry) > direct_score(brawl, "fight", query, registry)

    results = query_lattice("fight", query, lattice, registry, limit=10)
    order = [r.node for r in results]

    assert order.index(brawl) < order.index(market)
