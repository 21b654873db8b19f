"""Tests for coordinate allocation and lattice pages."""

import pytest
from eideus.lattice import Lattice, PAGE_CAPACITY, coordinate_of
from eideus.models import FaceType


def test_coordinates_cover_the_cube():
    coords = [coordinate_of(n) for n in range(PAGE_CAPACITY)]

    assert len(set(coords)) == PAGE_CAPACITY
    assert all(0 <= c <= 6 for coord in coords for c in coord)


def test_coordinate_decomposition():
    assert coordinate_of(0) == (0, 0, 0)
    assert coordinate_of(6) == (6, 0, 0)
    assert coordinate_of(7) == (0, 1, 0)
    assert coordinate_of(49) == (0, 0, 1)
    assert coordinate_of(342) == (6, 6, 6)


def test_coordinate_out_of_page_range():
    with pytest.raises(ValueError):
        coordinate_of(PAGE_CAPACITY)
    with pytest.raises(ValueError):
        coordinate_of(-1)


def test_append_places_nodes_in_order(lattice):
    first = lattice.append({FaceType.FRONT: "0xa-1"})
    second = lattice.append({FaceType.FRONT: "0xb-1"})

    assert first.coordinate == (0, 0, 0)
    assert second.coordinate == (1, 0, 0)
    assert lattice.node_count == 2
    assert lattice.active_page_index == 0


def test_full_page_rolls_over(lattice):
    for _ in range(PAGE_CAPACITY):
        lattice.append({})

    node = lattice.append({})

    assert len(lattice.pages) == 2
    assert len(lattice.pages[0]) == PAGE_CAPACITY
    assert node.lattice_index == 1
    assert node.coordinate == (0, 0, 0)


def test_node_at(lattice):
    for _ in range(10):
        lattice.append({})

    node = lattice.node_at(0, 2, 1, 0)

    assert node is not None
    assert node.coordinate == (2, 1, 0)
    assert lattice.node_at(0, 3, 1, 0) is None
    assert lattice.node_at(1, 0, 0, 0) is None
    assert lattice.node_at(0, 7, 0, 0) is None


def test_list_round_trip(lattice):
    lattice.append({FaceType.FRONT: "0xa-1", FaceType.LEFT: "0xb-2"}, timestamp=1234)

    data = lattice.to_list()
    restored = Lattice.from_list(data)

    assert data[0][0]["latticeIndex"] == 0
    assert data[0][0]["faces"]["FRONT"] == "0xa-1"
    assert restored.flatten() == lattice.flatten()


def test_empty_lattice_has_one_page():
    assert Lattice().pages == [[]]
    assert Lattice.from_list([]).pages == [[]]
