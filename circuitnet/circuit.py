"""
Circuit class for representing electronic circuits as connected pins and
resolving them into numbered nets.
"""

import logging
import warnings
from types import MappingProxyType

import networkx as nx

from .components import Ground, Terminal, as_terminal, component_label, discover_terminals, is_ground
from .errors import InvalidTerminalError, PinNotConnectedError
from .union_find import DisjointSet

logger = logging.getLogger(__name__)

GROUND_NODE = 0


def node_name(node_id):
    """Solver-facing name of a node id: ``gnd`` for 0, ``_net<k>`` otherwise."""
    if node_id < 0:
        raise ValueError(f"Node ids are non-negative, got {node_id}")
    if node_id == GROUND_NODE:
        return "gnd"
    return f"_net{node_id}"


class NodeTable:
    """
    Snapshot of one resolution pass: which node id every pin landed on.

    Tables are never modified after construction. Editing the circuit and
    resolving again produces a new table; results already bound to an older
    table keep it.
    """

    def __init__(self, components, assignments, names):
        self._components = tuple(components)
        self._index = {id(component): i for i, component in enumerate(self._components)}
        self._assignments = tuple(MappingProxyType(dict(a)) for a in assignments)
        self._names = tuple(names)

    def _lookup(self, component):
        index = self._index.get(id(component))
        if index is None:
            raise PinNotConnectedError(
                component_label(component),
                self._names,
                detail=f"Component '{component_label(component)}' was not part of the resolved circuit",
            )
        return index

    def node_of(self, target, terminal_name=None):
        """
        Node id of a pin.

        Args:
            target: Terminal, (component, terminal_name) tuple, or component
            terminal_name: Terminal name when target is a component
        """
        if isinstance(target, Terminal):
            component, terminal_name = target.component, target.terminal_name
        elif isinstance(target, tuple):
            component, terminal_name = target
        else:
            component = target
        terminals = self._assignments[self._lookup(component)]
        if terminal_name is None:
            if len(terminals) != 1:
                raise TypeError(f"Component '{component_label(component)}' has {len(terminals)} terminals; name one")
            (terminal_name,) = terminals
        if terminal_name not in terminals:
            raise InvalidTerminalError(component_label(component), terminal_name, tuple(terminals))
        return terminals[terminal_name]

    def terminals_of(self, component):
        """Read-only mapping of terminal name to node id for one component."""
        return self._assignments[self._lookup(component)]

    def name_of(self, component):
        """Name the component carried when the table was built."""
        return self._names[self._lookup(component)]

    @property
    def components(self):
        return self._components

    def node_ids(self):
        """Sorted distinct node ids, ground included when present."""
        return sorted({node for terminals in self._assignments for node in terminals.values()})

    @property
    def num_nodes(self):
        """Number of distinct non-ground nodes."""
        return len([node for node in self.node_ids() if node != GROUND_NODE])

    def items(self):
        """Yield (component, terminal_name, node_id) for every resolved pin."""
        for component, terminals in zip(self._components, self._assignments):
            for terminal_name, node in terminals.items():
                yield component, terminal_name, node

    def __contains__(self, component):
        return id(component) in self._index

    def __len__(self):
        return sum(len(terminals) for terminals in self._assignments)

    def __repr__(self):
        return f"NodeTable({len(self._components)} components, {self.num_nodes} nodes)"


class Circuit:
    """
    An electronic circuit: an ordered set of components plus pin-to-pin
    connections.

    Connections are recorded in a disjoint set over integer slots, one slot per
    (component, terminal) pair. ``resolve_nodes`` turns the resulting sets into
    node ids, with every net that touches a ground terminal becoming node 0.

    Examples:
        circuit = Circuit("Divider")
        v1 = DCVoltageSource(5.0, name="V1")
        r1, r2 = Resistor(1e3, name="R1"), Resistor(1e3, name="R2")
        circuit.connect(v1.nplus, r1.n1)
        circuit.connect(r1.n2, r2.n1)
        circuit.connect(r2.n2, circuit.gnd)
        circuit.connect(v1.nminus, circuit.gnd)
        nodes = circuit.resolve_nodes()
    """

    def __init__(self, name="Untitled Circuit"):
        self.name = name
        self.components = []
        self.wires = []  # List of (terminal1, terminal2) connections, in call order
        self._component_index = {}  # id(component) -> stable arena index
        self._next_component_index = 0
        self._slots = {}  # (component index, terminal name) -> slot
        self._next_slot = 0
        self._uf = DisjointSet()
        self._nodes = None
        self._dirty = True
        self._gnd = None

    @property
    def gnd(self):
        """Terminal of this circuit's own Ground component, created on first use."""
        if self._gnd is None:
            self._gnd = Ground("GND")
            self.add_component(self._gnd)
        return self._gnd.n

    def add_component(self, component):
        """Add a component to the circuit. Adding the same object twice is a no-op."""
        if component is None:
            raise TypeError("Cannot add None to a circuit")
        if id(component) not in self._component_index:
            self._component_index[id(component)] = self._next_component_index
            self._next_component_index += 1
            self.components.append(component)
            self._dirty = True
        return component

    def remove_component(self, component):
        """
        Remove a component and every connection touching it.

        The remaining connections are replayed into a fresh disjoint set, so
        nets that were only joined through the removed component split apart.
        """
        index = self._component_index.pop(id(component), None)
        if index is None:
            return
        self.components = [c for c in self.components if c is not component]
        self.wires = [
            (t1, t2) for t1, t2 in self.wires
            if t1.component is not component and t2.component is not component
        ]
        self._slots = {key: slot for key, slot in self._slots.items() if key[0] != index}
        if component is self._gnd:
            self._gnd = None

        self._uf = DisjointSet()
        for t1, t2 in self.wires:
            self._uf.union(self._slot_of(t1), self._slot_of(t2))
        self._dirty = True

    def _slot(self, component_index, terminal_name):
        key = (component_index, terminal_name)
        slot = self._slots.get(key)
        if slot is None:
            slot = self._next_slot
            self._next_slot += 1
            self._slots[key] = slot
        return slot

    def _slot_of(self, terminal):
        return self._slot(self._component_index[id(terminal.component)], terminal.terminal_name)

    def connect(self, terminal1, terminal2):
        """
        Connect two pins.

        Args:
            terminal1: Terminal, (component, terminal_name) tuple, or a
                single-terminal component such as Ground
            terminal2: Same forms as terminal1

        Components that are not in the circuit yet are added. Connecting the
        same pair again, in either order, changes nothing.
        """
        t1 = as_terminal(terminal1)
        t2 = as_terminal(terminal2)
        if t1 == t2:
            warnings.warn(
                f"Connecting {t1} to itself has no effect.",
                UserWarning,
                stacklevel=2
            )

        self.add_component(t1.component)
        self.add_component(t2.component)

        # Record the connection once - prevent duplicate wires between same endpoints
        if (t1, t2) not in self.wires and (t2, t1) not in self.wires:
            self.wires.append((t1, t2))

        self._uf.union(self._slot_of(t1), self._slot_of(t2))
        self._dirty = True

    wire = connect

    def resolve_nodes(self):
        """
        Assign a node id to every pin of every component.

        Every net reachable from a ground terminal gets id 0, even when several
        ground components are not wired to each other. The other nets get 1, 2,
        ... in the order their first pin appears, walking components in
        insertion order and terminals in declaration order.

        Returns:
            NodeTable: also kept as ``circuit.nodes``
        """
        uf = self._uf
        per_component = []
        for component in self.components:
            index = self._component_index[id(component)]
            slots = []
            for terminal_name in discover_terminals(component):
                slot = self._slot(index, terminal_name)
                uf.find(slot)
                slots.append((terminal_name, slot))
            per_component.append(slots)

        roots = {}
        ground_roots = set()
        for component, slots in zip(self.components, per_component):
            for _, slot in slots:
                root = uf.find(slot)
                roots.setdefault(root, None)
                if is_ground(component):
                    ground_roots.add(root)

        if roots and not ground_roots:
            logger.warning("Circuit '%s' has no ground component; no net is mapped to node 0", self.name)

        root_to_node = {}
        next_node = 1
        for root in roots:
            if root in ground_roots:
                root_to_node[root] = GROUND_NODE
            else:
                root_to_node[root] = next_node
                next_node += 1

        assignments = [
            {terminal_name: root_to_node[uf.find(slot)] for terminal_name, slot in slots}
            for slots in per_component
        ]
        self._nodes = NodeTable(self.components, assignments, self._assign_component_names())
        self._dirty = False
        logger.debug(
            "Resolved circuit '%s': %d components, %d pins, %d nodes",
            self.name, len(self.components), len(self._nodes), self._nodes.num_nodes
        )
        return self._nodes

    def _assign_component_names(self):
        """
        Names for every component, without mutating them.

        A requested name is used as is; unnamed components get their type
        prefix plus a per-prefix counter (R1, R2, C1, ...).
        """
        names = []
        type_counts = {}
        for component in self.components:
            requested = getattr(component, "_requested_name", getattr(component, "name", None))
            if requested:
                names.append(requested)
                continue
            prefix_fn = getattr(component, "get_component_type_prefix", None)
            prefix = prefix_fn() if prefix_fn else "X"
            type_counts[prefix] = type_counts.get(prefix, 0) + 1
            names.append(f"{prefix}{type_counts[prefix]}")
        return names

    def get_component_name(self, component):
        """Get the final assigned name for a component."""
        if id(component) not in self._component_index:
            raise ValueError(f"Component '{component_label(component)}' is not in circuit '{self.name}'")
        names = self._assign_component_names()
        return names[self.components.index(component)]

    @property
    def nodes(self):
        """NodeTable from the last ``resolve_nodes`` call, or None."""
        return self._nodes

    @property
    def is_resolved(self):
        """False before the first resolution and after any later edit."""
        return self._nodes is not None and not self._dirty

    @property
    def num_nodes(self):
        return self._require_nodes().num_nodes

    def _require_nodes(self):
        if self._nodes is None:
            raise PinNotConnectedError(
                self.name, (),
                detail=f"Circuit '{self.name}' has not been resolved; call resolve_nodes() first",
            )
        if self._dirty:
            raise PinNotConnectedError(
                self.name, (),
                detail=f"Circuit '{self.name}' changed since it was last resolved; call resolve_nodes() again",
            )
        return self._nodes

    def node_of(self, target, terminal_name=None):
        """Node id of a pin after resolution."""
        return self._require_nodes().node_of(target, terminal_name)

    def terminals_of(self, component):
        """Terminal name to node id mapping of one component after resolution."""
        return self._require_nodes().terminals_of(component)

    def all_terminals(self):
        """Get all terminals from all components in this circuit."""
        for component in self.components:
            for terminal_name in discover_terminals(component):
                yield as_terminal(component, terminal_name)

    def connection_graph(self):
        """
        Declared connectivity as a ``networkx.Graph``.

        Graph nodes are Terminal objects for every pin in the circuit, each
        carrying ``component`` and ``terminal`` attributes; edges are the
        connections made with ``connect``.
        """
        graph = nx.Graph(name=self.name)
        for terminal in self.all_terminals():
            graph.add_node(terminal, component=component_label(terminal.component), terminal=terminal.terminal_name)
        graph.add_edges_from(self.wires)
        return graph

    def connected_terminals(self, terminal):
        """
        All terminals electrically connected to ``terminal``, itself included.
        """
        terminal = as_terminal(terminal)
        graph = self.connection_graph()
        if terminal not in graph:
            raise ValueError(f"{terminal} does not belong to circuit '{self.name}'")
        return set(nx.node_connected_component(graph, terminal))

    def simulate(self, netlist, analysis, backend=None, **options):
        """
        Run a netlist through a solver backend and bind the results to this
        circuit's pins.

        The netlist is expected to use ``node_name`` for the node ids of the
        current resolution; the circuit is resolved first if needed.

        Args:
            netlist: Solver input text
            analysis: AnalysisKind or its value ("dc", "ac", "transient", "sp")
            backend: Simulation backend (defaults to QucsatorBackend)
            **options: Passed to the result extractor (e.g. z0_ohm)

        Returns:
            Typed result for the requested analysis
        """
        from .simulation import run_simulation
        if not self.is_resolved:
            self.resolve_nodes()
        return run_simulation(netlist, analysis, nodes=self._nodes, backend=backend, **options)

    def __repr__(self):
        return f"Circuit('{self.name}', {len(self.components)} components, {len(self.wires)} wires)"
