"""Tests for experiments."""

import json
from collections import Counter

import pytest

from pickpick import Experiment, Targeting, ValidationError, Variation, create_experiment


def run(experiment: Experiment, size: int) -> Counter:
    """Pick ``size`` times and count the payloads."""
    return Counter(experiment.pick() for _ in range(size))


class TestExperimentCreate:
    """Tests for building experiments."""

    def test_id_required(self, variations):
        """Test a missing id is rejected."""
        with pytest.raises(ValidationError, match="id is required"):
            Experiment.create(variations=variations)
        with pytest.raises(ValidationError, match="id is required"):
            Experiment.create(id="", variations=variations)

    def test_variations_required(self):
        """Test an empty variation list is rejected."""
        with pytest.raises(ValidationError, match="at least one variation"):
            Experiment.create(id="foo-id", variations=[])

    def test_invalid_targeting(self, variations):
        with pytest.raises(ValidationError, match="invalid targeting"):
            Experiment.create(id="foo-id", variations=variations, targeting=42)

    def test_constructor_requires_variations_instances(self):
        with pytest.raises(ValidationError, match="invalid variation at index 0"):
            Experiment(id="foo-id", variations=[1])

    def test_constructor_requires_targeting_instance(self):
        with pytest.raises(ValidationError, match="invalid targeting"):
            Experiment(id="foo-id", variations=[Variation(1)], targeting={"geo": "US"})

    def test_normalizes_variations(self):
        """Test mixed raw variation forms."""
        experiment = Experiment.create(
            id="foo-id",
            variations=[1, {"object": 2, "weight": 3}, Variation.create(object=3, weight=2)],
        )

        assert [(v.object, v.weight) for v in experiment] == [(1, 1), (2, 3), (3, 2)]

    def test_defaults(self, variations):
        """Test name and targeting defaults."""
        experiment = Experiment.create(id="foo-id", variations=variations)

        assert experiment.name == "foo-id"
        assert experiment.targeting is Targeting.default()
        assert experiment.user_data is None
        assert len(experiment) == 3

    def test_alias(self, variations):
        assert create_experiment(id="foo-id", variations=variations).id == "foo-id"


class TestExperimentPick:
    """Tests for picking variations."""

    def test_even_weights(self, variations):
        """Test round-robin over equal weights."""
        experiment = Experiment.create(id="foo-id", variations=variations)
        assert run(experiment, 100) == {1: 34, 2: 33, 3: 33}

    def test_uneven_weights(self):
        """Test round-robin honors weights."""
        experiment = Experiment.create(
            id="foo-id",
            variations=[
                Variation.create(object=1, weight=50),
                Variation.create(object=2, weight=25),
                Variation.create(object=3, weight=25),
            ],
        )
        assert run(experiment, 100) == {1: 50, 2: 25, 3: 25}

    def test_targeting_does_not_affect_pick(self):
        """Test pick() ignores targeting; matching is the caller's job."""
        experiment = Experiment.create(id="foo-id", variations=[1, 2], targeting={"geo": "US"})

        assert experiment.match({"geo": "US"})
        assert not experiment.match({"geo": "MX"})
        assert run(experiment, 50) == {1: 25, 2: 25}

    def test_pick_variation(self):
        experiment = Experiment.create(id="foo-id", variations=[{"object": "a", "weight": 2}])
        variation = experiment.pick_variation()
        assert isinstance(variation, Variation)
        assert variation.object == "a"

    def test_weight_change_applies(self):
        """Test reassigning a held variation's weight changes the rotation."""
        variation = Variation("x")
        experiment = Experiment.create(id="foo-id", variations=[variation, "y"])

        variation.weight = 3

        assert [experiment.pick() for _ in range(8)] == ["x", "x", "x", "y"] * 2

    def test_weight_change_restarts_round_robin(self):
        variation = Variation("x")
        experiment = Experiment.create(id="foo-id", variations=[variation, "y"])
        assert experiment.pick() == "x"

        variation.weight = 2

        assert [experiment.pick() for _ in range(3)] == ["x", "x", "y"]


class TestNestedExperiments:
    """Tests for mutually exclusive sub-experiments."""

    @pytest.fixture
    def nested(self):
        e1 = Experiment.create(id="e1", variations=[1, 2], targeting={"geo": "US"})
        e2 = Experiment.create(id="e2", variations=[3, 4], targeting={"geo": "MX"})
        e3 = Experiment.create(id="e3", variations=[5, 6])
        outer = Experiment.create(id="outer", variations=[e1, e2, e3])
        return outer, e1, e2, e3

    def test_pick_returns_sub_experiment(self, nested):
        """Test pick() does not recurse into nested experiments."""
        outer, e1, e2, e3 = nested
        assert [outer.pick() for _ in range(3)] == [e1, e2, e3]

    def test_pick_leaf_recurses(self, nested):
        """Test pick_leaf() resolves down to leaf payloads."""
        outer = nested[0]
        assert [outer.pick_leaf() for _ in range(6)] == [1, 3, 5, 2, 4, 6]

    def test_caller_recursion(self, nested):
        """Test explicit recursion through pick()."""
        outer = nested[0]
        counts = Counter()
        for _ in range(60):
            value = outer.pick()
            while isinstance(value, Experiment):
                value = value.pick()
            counts[value] += 1

        assert counts == {1: 10, 2: 10, 3: 10, 4: 10, 5: 10, 6: 10}


class TestExperimentAdd:
    """Tests for adding variations."""

    def test_add_restarts_round_robin(self):
        """Test adding a variation rebuilds the selector."""
        experiment = Experiment.create(id="foo-id", variations=[1, 2])
        assert experiment.pick() == 1

        experiment.add(3)

        assert [experiment.pick() for _ in range(3)] == [1, 2, 3]
        assert [v.object for v in experiment] == [1, 2, 3]

    def test_add_literal(self):
        experiment = Experiment.create(id="foo-id", variations=[1])
        variation = experiment.add({"object": 2, "weight": 2})

        assert variation.weight == 2
        assert run(experiment, 3) == {1: 1, 2: 2}

    def test_add_experiment_rejected(self):
        """Test experiments must be wrapped before being added."""
        experiment = Experiment.create(id="foo-id", variations=[1])
        other = Experiment.create(id="bar-id", variations=[2])

        with pytest.raises(ValidationError, match="wrap it in a Variation"):
            experiment.add(other)
        assert len(experiment) == 1

    def test_add_wrapped_experiment(self):
        experiment = Experiment.create(id="foo-id", variations=[1])
        other = Experiment.create(id="bar-id", variations=[2])

        experiment.add(Variation(other))

        assert experiment.variations[1].is_experiment

    def test_add_invalid_weight(self):
        experiment = Experiment.create(id="foo-id", variations=[1])
        with pytest.raises(ValidationError):
            experiment.add({"object": 2, "weight": 0})
        assert len(experiment) == 1


class TestExperimentSerialization:
    """Tests for to_json and from_dict."""

    def test_to_json(self):
        experiment = Experiment.create(
            id="foo-id",
            name="e1",
            variations=[1, 2, 3],
            targeting={"geo": "US"},
        )

        assert experiment.to_json() == {
            "id": "foo-id",
            "name": "e1",
            "targeting": {"geo": "US"},
            "variations": [
                {"object": 1, "weight": 1},
                {"object": 2, "weight": 1},
                {"object": 3, "weight": 1},
            ],
        }

    def test_user_data(self):
        experiment = Experiment.create(id="foo-id", variations=[1], user_data={"owner": "growth"})
        data = experiment.to_json()

        assert data["userData"] == {"owner": "growth"}
        assert Experiment.from_dict(data).user_data == {"owner": "growth"}

    @pytest.mark.parametrize(
        "targeting",
        [
            {"geo": ["US", "MX"], "page": "!home", "language": "*"},
            '_.geo === "US" && _.page !== "home"',
            None,
        ],
    )
    def test_round_trip(self, targeting):
        """Test to_json survives a JSON string round trip."""
        experiment = Experiment.create(
            id="foo-id",
            name="e1",
            variations=[{"object": {"price": 1}, "weight": 2}, "b", 3],
            targeting=targeting,
        )

        restored = Experiment.from_dict(json.loads(json.dumps(experiment.to_json())))

        assert restored.id == experiment.id
        assert restored.name == experiment.name
        assert restored.to_json() == experiment.to_json()
        assert list(restored) == list(experiment)
        for visitor in ({"geo": "US", "page": "buy"}, {"geo": "IL", "page": "home"}, {}):
            assert restored.match(visitor) == experiment.match(visitor)

    def test_round_trip_nested_experiment(self):
        """Test nested experiments come back as experiments, at any depth."""
        leaf = Experiment.create(id="leaf", variations=["x", "y"])
        sub = Experiment.create(id="sub", variations=[Variation(leaf), "z"])
        parent = Experiment.create(id="parent", variations=[Variation.create(object=sub, weight=2), 1])

        restored = Experiment.from_dict(json.loads(json.dumps(parent.to_json())))

        picked = restored.pick()
        assert isinstance(picked, Experiment)
        assert picked.id == "sub"
        assert restored.variations[0].weight == 2
        assert isinstance(picked.pick(), Experiment)
        assert restored.to_json() == parent.to_json()

        fresh = Experiment.from_dict(json.loads(json.dumps(parent.to_json())))
        assert [fresh.pick_leaf() for _ in range(3)] == [parent.pick_leaf() for _ in range(3)]

    def test_bare_experiment_literal_variation(self):
        restored = Experiment.from_dict(
            {"id": "parent", "variations": [{"id": "sub", "variations": [1]}, {"price": 1}]}
        )

        assert restored.variations[0].is_experiment
        assert not restored.variations[1].is_experiment
        assert restored.variations[1].object == {"price": 1}

    def test_describe(self):
        nested = Experiment.create(id="inner", variations=["x"])
        experiment = Experiment.create(
            id="foo-id", name="colors", variations=["red", Variation(nested)]
        )
        text = str(experiment)

        assert "Name: colors" in text
        assert "'red'" in text
        assert "Id: inner" in text
