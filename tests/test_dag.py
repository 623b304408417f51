"""
Tests for the stage graph.
"""

import pytest

from moraine.core.dag import StageGraph, StageGraphError
from moraine.core.stage import Stage
from moraine.stages import build_pipeline


def _stage(name, produces=(), consumes=()):
    return Stage(name=name, func=lambda ctx, **inputs: {}, produces=produces, consumes=consumes)


class TestStageGraph:
    """Tests for StageGraph class."""

    def test_empty_graph(self):
        """Test creating an empty graph."""
        graph = StageGraph()

        assert len(graph.nodes) == 0
        assert graph.topological_sort() == []

    def test_add_edge(self):
        """Test adding edges between nodes."""
        graph = StageGraph()
        graph.add_node("cluster", produces=["cluster"])
        graph.add_node("deployment", consumes=["cluster"])
        graph.add_edge("cluster", "deployment")

        # deployment depends on cluster
        assert "cluster" in graph.nodes["deployment"].dependencies
        assert "deployment" in graph.nodes["cluster"].dependents

    def test_add_edge_unknown_node(self):
        """Test that edges need both endpoints."""
        graph = StageGraph()
        graph.add_node("cluster")

        with pytest.raises(StageGraphError):
            graph.add_edge("cluster", "deployment")

    def test_build_infers_edges(self):
        """Test inferring edges from produced and consumed names."""
        graph = StageGraph.build([
            _stage("cluster", produces=("cluster",)),
            _stage("database", produces=("database",)),
            _stage("deployment", consumes=("cluster", "database")),
        ])

        assert set(graph.get_dependencies("deployment")) == {"cluster", "database"}
        assert graph.get_dependents("cluster") == ["deployment"]
        assert graph.producers == {"cluster": "cluster", "database": "database"}

    def test_build_unknown_input(self):
        """Test that a consumed name needs a producer."""
        with pytest.raises(StageGraphError, match="no stage produces"):
            StageGraph.build([_stage("deployment", consumes=("cluster",))])

    def test_build_duplicate_producer(self):
        """Test that a name can only have one producer."""
        with pytest.raises(StageGraphError, match="multiple stages"):
            StageGraph.build([
                _stage("autopilot", produces=("cluster",)),
                _stage("regional", produces=("cluster",)),
            ])

    def test_build_duplicate_stage(self):
        """Test that stage names are unique."""
        with pytest.raises(StageGraphError):
            StageGraph.build([_stage("storage"), _stage("storage")])

    def test_topological_sort_complex(self):
        """Test topological sorting with parallel branches."""
        # Diamond:
        #      network
        #     /       \
        # cluster   database
        #     \       /
        #     deployment
        graph = StageGraph.build([
            _stage("network", produces=("vpc",)),
            _stage("cluster", produces=("cluster",), consumes=("vpc",)),
            _stage("database", produces=("database",), consumes=("vpc",)),
            _stage("deployment", consumes=("cluster", "database")),
        ])

        sorted_nodes = graph.topological_sort()

        assert sorted_nodes[0] == "network"
        assert sorted_nodes[-1] == "deployment"

    def test_cycle_detection(self):
        """Test detecting cycles."""
        graph = StageGraph.build([
            _stage("a", produces=("x",), consumes=("y",)),
            _stage("b", produces=("y",), consumes=("x",)),
        ])

        cycle = graph.detect_cycles()

        assert cycle is not None
        assert cycle[0] == cycle[-1]
        with pytest.raises(StageGraphError):
            graph.topological_sort()

    def test_no_cycle_detection(self):
        """Test that no cycle is detected in a valid graph."""
        graph = StageGraph.build([
            _stage("a", produces=("x",)),
            _stage("b", produces=("y",), consumes=("x",)),
        ])

        assert graph.detect_cycles() is None

    def test_verify_order(self):
        """Test checking a fixed call order against the graph."""
        graph = StageGraph.build([
            _stage("cluster", produces=("cluster",)),
            _stage("deployment", consumes=("cluster",)),
        ])

        graph.verify_order(["cluster", "deployment"])
        with pytest.raises(StageGraphError, match="called before"):
            graph.verify_order(["deployment", "cluster"])

    def test_downstream(self):
        """Test collecting transitive dependents."""
        graph = StageGraph.build([
            _stage("registry", produces=("repository",)),
            _stage("image", produces=("image",), consumes=("repository",)),
            _stage("release", consumes=("image",)),
            _stage("storage"),
        ])

        assert graph.downstream("registry") == ["image", "release"]
        assert graph.downstream("storage") == []

    def test_execution_levels(self):
        """Test grouping the microservice stages into parallel levels."""
        graph = build_pipeline().graph()

        levels = graph.get_execution_levels()

        assert len(levels) == 2
        assert {"storage", "registry", "cluster", "database", "readme"} <= set(levels[0])
        assert set(levels[1]) == {"image", "deployment"}

    def test_graph_to_dict(self):
        """Test converting the graph to a dictionary."""
        graph = StageGraph.build([
            _stage("cluster", produces=("cluster",)),
            _stage("deployment", consumes=("cluster",)),
        ])

        graph_dict = graph.to_dict()

        assert len(graph_dict["nodes"]) == 2
        assert graph_dict["edges"] == [{"from": "cluster", "to": "deployment"}]
