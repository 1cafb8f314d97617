#!/usr/bin/env python3
"""
Tests for Circuit: component registration, connections and net resolution.
"""

import contextlib
import logging
import random
import unittest
import warnings
import os
import sys

import networkx as nx

# Add the parent directory to the path to import circuitnet
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from circuitnet import (
    Circuit, NodeTable, node_name, Ground, Resistor, Capacitor, DCVoltageSource,
    SPfile, Substrate, Terminal, InvalidTerminalError, PinNotConnectedError,
)
from .test_helpers import build_divider


@contextlib.contextmanager
def quiet_circuit_logger():
    """Ungrounded random circuits log a warning; keep it out of the output."""
    logger = logging.getLogger("circuitnet.circuit")
    previous = logger.disabled
    logger.disabled = True
    try:
        yield
    finally:
        logger.disabled = previous


class DataBagResistor:
    """Component without a Component base class."""

    def __init__(self, name):
        self.name = name
        self.n1 = 0
        self.n2 = 0


class TestCircuitBasics(unittest.TestCase):
    """Component and connection bookkeeping."""

    def setUp(self):
        self.circuit = Circuit("Test Circuit")

    def test_circuit_creation(self):
        circuit = Circuit("My Circuit")
        self.assertEqual(circuit.name, "My Circuit")
        self.assertEqual(len(circuit.components), 0)
        self.assertEqual(len(circuit.wires), 0)
        self.assertFalse(circuit.is_resolved)
        self.assertIsNone(circuit.nodes)

    def test_add_remove_component(self):
        r1 = Resistor(resistance=1000)

        self.assertIs(self.circuit.add_component(r1), r1)
        self.assertIn(r1, self.circuit.components)

        # Adding same component again should not duplicate
        self.circuit.add_component(r1)
        self.assertEqual(len(self.circuit.components), 1)

        self.circuit.remove_component(r1)
        self.assertNotIn(r1, self.circuit.components)
        self.assertEqual(len(self.circuit.components), 0)

        # Removing something that is not there is a no-op
        self.circuit.remove_component(r1)

    def test_connect_auto_adds_components(self):
        vs = DCVoltageSource(voltage=5.0)
        r1 = Resistor(resistance=1000)
        self.circuit.connect(vs.nplus, r1.n1)
        self.assertEqual(self.circuit.components, [vs, r1])

    def test_connect_is_symmetric_and_idempotent(self):
        r1 = Resistor()
        r2 = Resistor()
        self.circuit.connect(r1.n2, r2.n1)
        self.circuit.connect(r2.n1, r1.n2)
        self.circuit.connect(r1.n2, r2.n1)
        self.assertEqual(self.circuit.wires, [(r1.n2, r2.n1)])

    def test_wire_alias(self):
        r1 = Resistor()
        r2 = Resistor()
        self.circuit.wire(r1.n2, r2.n1)
        self.assertEqual(len(self.circuit.wires), 1)

    def test_connect_accepts_tuple_and_ground_component(self):
        r1 = Resistor()
        g = Ground()
        self.circuit.connect((r1, "n2"), g)
        self.assertEqual(self.circuit.wires, [(r1.n2, g.n)])

    def test_connect_unknown_terminal_raises(self):
        r1 = Resistor(name="R1")
        with self.assertRaises(InvalidTerminalError) as ctx:
            self.circuit.connect((r1, "n5"), self.circuit.gnd)
        self.assertEqual(ctx.exception.valid_terminals, ("n1", "n2"))
        self.assertNotIn(r1, self.circuit.components)

    def test_connect_rejects_non_pins(self):
        r1 = Resistor()
        with self.assertRaises(TypeError):
            self.circuit.connect(r1.n1, "gnd")
        with self.assertRaises(TypeError):
            self.circuit.connect(r1, self.circuit.gnd)  # two terminals, ambiguous

    def test_self_connection_warns(self):
        r1 = Resistor()
        with self.assertWarns(UserWarning):
            self.circuit.connect(r1.n1, r1.n1)

    def test_gnd_is_terminal_of_ground_component(self):
        gnd = self.circuit.gnd
        self.assertIsInstance(gnd, Terminal)
        self.assertTrue(gnd.component.is_ground)
        self.assertIs(self.circuit.gnd, gnd)
        self.assertEqual(len(self.circuit.components), 1)

    def test_component_names(self):
        r_a = Resistor()
        r_b = Resistor(name="Rload")
        r_c = Resistor()
        c1 = Capacitor()
        for component in (r_a, r_b, r_c, c1):
            self.circuit.add_component(component)
        self.assertEqual(self.circuit.get_component_name(r_a), "R1")
        self.assertEqual(self.circuit.get_component_name(r_b), "Rload")
        self.assertEqual(self.circuit.get_component_name(r_c), "R2")
        self.assertEqual(self.circuit.get_component_name(c1), "C1")
        # Names are not written back to components
        self.assertEqual(r_a.name, "UNNAMED")
        with self.assertRaises(ValueError):
            self.circuit.get_component_name(Resistor())


class TestNodeResolution(unittest.TestCase):
    """Resolution of connections into node ids."""

    def test_divider(self):
        circuit, v1, r1, r2 = build_divider()
        nodes = circuit.resolve_nodes()
        self.assertIsInstance(nodes, NodeTable)
        self.assertTrue(circuit.is_resolved)
        self.assertEqual(circuit.node_of(v1.nplus), 1)
        self.assertEqual(circuit.node_of(r1.n1), 1)
        self.assertEqual(circuit.node_of(r1.n2), 2)
        self.assertEqual(circuit.node_of(r2, "n1"), 2)
        self.assertEqual(circuit.node_of(r2.n2), 0)
        self.assertEqual(circuit.node_of(v1.nminus), 0)
        self.assertEqual(circuit.num_nodes, 2)
        self.assertEqual(dict(circuit.terminals_of(r1)), {"n1": 1, "n2": 2})

    def test_resolution_does_not_mutate_components(self):
        circuit, v1, r1, r2 = build_divider()
        circuit.resolve_nodes()
        self.assertIsInstance(r1.n1, Terminal)
        self.assertEqual(r1.name, "R1")

    def test_resolve_is_idempotent(self):
        circuit, v1, r1, r2 = build_divider()
        first = list(circuit.resolve_nodes().items())
        second = list(circuit.resolve_nodes().items())
        self.assertEqual(first, second)

    def test_ground_invariant_without_ground_wire(self):
        """Separate ground components all map to node 0."""
        circuit = Circuit()
        r1 = Resistor()
        r2 = Resistor()
        g1 = Ground("G1")
        g2 = Ground("G2")
        circuit.connect(r1.n2, g1)
        circuit.connect(r2.n2, g2)
        circuit.connect(r1.n1, r2.n1)
        circuit.resolve_nodes()
        self.assertEqual(circuit.node_of(r1.n2), 0)
        self.assertEqual(circuit.node_of(r2.n2), 0)
        self.assertEqual(circuit.node_of(g1.n), 0)
        self.assertEqual(circuit.node_of(g2.n), 0)
        self.assertEqual(circuit.node_of(r1.n1), 1)
        self.assertEqual(circuit.num_nodes, 1)

    def test_isolated_terminal_gets_own_node(self):
        circuit = Circuit()
        c1 = Capacitor(name="C1")
        r1 = Resistor(name="R1")
        circuit.connect(r1.n1, circuit.gnd)
        circuit.add_component(c1)
        circuit.connect(r1.n2, c1.n1)
        circuit.resolve_nodes()
        ids = [circuit.node_of(r1.n2), circuit.node_of(c1.n2)]
        self.assertEqual(circuit.node_of(c1.n1), ids[0])
        self.assertNotEqual(ids[0], ids[1])
        self.assertNotIn(0, ids)
        self.assertEqual(sorted(ids), [1, 2])

    def test_unconnected_component_terminals_get_distinct_nodes(self):
        circuit = Circuit()
        r1 = circuit.add_component(Resistor())
        circuit.resolve_nodes()
        self.assertEqual(dict(circuit.terminals_of(r1)), {"n1": 1, "n2": 2})

    def test_components_without_terminals_are_skipped(self):
        circuit, v1, r1, r2 = build_divider()
        sub = circuit.add_component(Substrate(name="Sub1"))
        nodes = circuit.resolve_nodes()
        self.assertEqual(dict(nodes.terminals_of(sub)), {})
        self.assertEqual(nodes.num_nodes, 2)

    def test_cycles(self):
        circuit = Circuit()
        r1, r2, r3 = Resistor(), Resistor(), Resistor()
        circuit.connect(r1.n2, r2.n1)
        circuit.connect(r2.n2, r3.n1)
        circuit.connect(r3.n2, r1.n1)
        circuit.connect(r1.n1, r2.n2)  # closes a second loop
        circuit.connect(r1.n2, circuit.gnd)
        circuit.resolve_nodes()
        self.assertEqual(circuit.node_of(r2.n1), 0)
        self.assertEqual(circuit.node_of(r1.n1), circuit.node_of(r3.n2))
        self.assertEqual(circuit.node_of(r1.n1), circuit.node_of(r2.n2))
        self.assertEqual(circuit.node_of(r1.n1), circuit.node_of(r3.n1))

    def test_data_bag_components(self):
        circuit = Circuit()
        rb = DataBagResistor("RB1")
        circuit.connect((rb, "n1"), circuit.gnd)
        circuit.resolve_nodes()
        self.assertEqual(circuit.node_of(rb, "n1"), 0)
        self.assertEqual(circuit.node_of(rb, "n2"), 1)
        self.assertEqual(rb.n2, 0)  # placeholder left untouched
        self.assertEqual(circuit.nodes.name_of(rb), "RB1")

    def test_spfile_reference_on_ground(self):
        circuit = Circuit()
        spf = SPfile("amp.s2p", name="AMP")
        r_in = Resistor(name="Rin")
        circuit.connect(r_in.n2, spf.n1)
        circuit.connect(spf.ref, circuit.gnd)
        circuit.resolve_nodes()
        self.assertEqual(circuit.node_of(spf.ref), 0)
        self.assertEqual(circuit.node_of(spf.n1), circuit.node_of(r_in.n2))
        self.assertNotEqual(circuit.node_of(spf.n2), 0)

    def test_missing_ground_logs_warning(self):
        circuit = Circuit("Floating")
        r1, r2 = Resistor(), Resistor()
        circuit.connect(r1.n2, r2.n1)
        with self.assertLogs("circuitnet.circuit", level="WARNING") as logs:
            circuit.resolve_nodes()
        self.assertIn("Floating", logs.output[0])
        self.assertNotIn(0, circuit.nodes.node_ids())

    def test_node_name(self):
        self.assertEqual(node_name(0), "gnd")
        self.assertEqual(node_name(3), "_net3")
        with self.assertRaises(ValueError):
            node_name(-1)


class TestNodeAccess(unittest.TestCase):
    """Reading node ids at the wrong time fails loudly."""

    def test_before_resolution(self):
        circuit, v1, r1, r2 = build_divider()
        with self.assertRaises(PinNotConnectedError):
            circuit.node_of(r1.n1)

    def test_after_edit(self):
        circuit, v1, r1, r2 = build_divider()
        circuit.resolve_nodes()
        circuit.connect(r2.n1, Capacitor().n1)
        self.assertFalse(circuit.is_resolved)
        with self.assertRaises(PinNotConnectedError):
            circuit.node_of(r1.n1)

    def test_component_added_after_resolution(self):
        circuit, v1, r1, r2 = build_divider()
        nodes = circuit.resolve_nodes()
        late = Resistor(name="Rlate")
        circuit.connect(late.n1, r1.n2)
        with self.assertRaises(PinNotConnectedError):
            nodes.node_of(late.n1)
        # The old snapshot is unaffected by the edit
        self.assertEqual(nodes.node_of(r1.n2), 2)

    def test_unknown_terminal_on_table(self):
        circuit, v1, r1, r2 = build_divider()
        nodes = circuit.resolve_nodes()
        with self.assertRaises(InvalidTerminalError):
            nodes.node_of(r1, "n9")


class TestRemoveComponent(unittest.TestCase):

    def test_removal_splits_nets(self):
        circuit = Circuit()
        r1, r2, link = Resistor(), Resistor(), Resistor()
        circuit.connect(r1.n2, link.n1)
        circuit.connect(link.n1, link.n2)
        circuit.connect(link.n2, r2.n1)
        circuit.resolve_nodes()
        self.assertEqual(circuit.node_of(r1.n2), circuit.node_of(r2.n1))

        circuit.remove_component(link)
        self.assertEqual(circuit.wires, [])
        circuit.resolve_nodes()
        self.assertNotEqual(circuit.node_of(r1.n2), circuit.node_of(r2.n1))

    def test_removal_keeps_other_connections(self):
        circuit, v1, r1, r2 = build_divider()
        circuit.remove_component(r2)
        circuit.resolve_nodes()
        self.assertEqual(circuit.node_of(v1.nplus), circuit.node_of(r1.n1))
        self.assertEqual(circuit.node_of(v1.nminus), 0)
        self.assertEqual(circuit.num_nodes, 2)


class TestConnectionGraph(unittest.TestCase):

    def test_graph_shape(self):
        circuit, v1, r1, r2 = build_divider()
        graph = circuit.connection_graph()
        self.assertIsInstance(graph, nx.Graph)
        # 2 + 2 + 2 pins plus the ground terminal
        self.assertEqual(graph.number_of_nodes(), 7)
        self.assertEqual(graph.number_of_edges(), 4)
        self.assertEqual(graph.nodes[r1.n2]["component"], "R1")
        self.assertEqual(graph.nodes[r1.n2]["terminal"], "n2")

    def test_connected_terminals(self):
        circuit, v1, r1, r2 = build_divider()
        self.assertEqual(circuit.connected_terminals(r1.n2), {r1.n2, r2.n1})
        self.assertEqual(
            circuit.connected_terminals(circuit.gnd),
            {circuit.gnd, r2.n2, v1.nminus},
        )

    def test_random_connections_match_connected_components(self):
        """Node ids partition pins exactly like graph connectivity does."""
        rng = random.Random(1234)
        for trial in range(20):
            circuit = Circuit(f"Random {trial}")
            parts = [Resistor(name=f"R{i}") for i in range(12)]
            grounds = [Ground(f"G{i}") for i in range(rng.randint(0, 2))]
            for component in parts + grounds:
                circuit.add_component(component)
            pins = [t for c in parts for t in (c.n1, c.n2)] + [g.n for g in grounds]
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", UserWarning)  # self-connections
                for _ in range(rng.randint(0, 25)):
                    circuit.connect(rng.choice(pins), rng.choice(pins))

            with quiet_circuit_logger():
                nodes = circuit.resolve_nodes()

            graph = circuit.connection_graph()
            for net in nx.connected_components(graph):
                ids = {nodes.node_of(t) for t in net}
                self.assertEqual(len(ids), 1, f"trial {trial}: one net, several ids")
                has_ground = any(t.component.is_ground for t in net)
                self.assertEqual(ids == {0}, has_ground)

            non_ground = sorted({n for n in nodes.node_ids() if n != 0})
            self.assertEqual(non_ground, list(range(1, len(non_ground) + 1)))
            nets = list(nx.connected_components(graph))
            ground_nets = [net for net in nets if any(t.component.is_ground for t in net)]
            self.assertEqual(len(non_ground), len(nets) - len(ground_nets))


if __name__ == "__main__":
    unittest.main()
