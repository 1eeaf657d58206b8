import numpy as np
from .errors import StructureError


def _first_cell(mask):
    """
    :param mask: boolean array of shape (stages, scenarios)
    :return: (row, column) of the first `True` cell in column-major order
    """
    num_rows = mask.shape[0]
    pos = np.flatnonzero(mask.T)[0]
    return int(pos % num_rows), int(pos // num_rows)


class NodalPartition:
    """
    Validated nodal partition matrix and the node grouping it encodes
    """

    def __init__(self, matrix, strict=False):
        """
        :param matrix: array where `row=stage`, `col=scenario` and `value=node id`
        :param strict: whether every scenario must own a separate node at the final stage [default: False]

        Node ids are numbered column by column, raising the id by 1 for each node not already defined.
        """
        self.__strict = bool(strict)
        self.__matrix = self.__check_numbers(matrix)
        self.__num_nodes = None
        self.__stages = None  # node stage, at position `id - 1`
        self.__ancestors = None  # ^
        self.__members = None  # ^
        self.__children = None  # ^
        self.__check_root()
        self.__check_order()
        self.__check_stages()
        if self.__strict:
            self.__check_leaves()
        self.__check_refinement()
        self.__update()

    # --------------------------------------------------------
    # Checks
    # --------------------------------------------------------
    @staticmethod
    def __check_numbers(matrix):
        try:
            arr = np.array(matrix)
        except (TypeError, ValueError) as err:
            raise StructureError(f"nodal partition matrix is not a rectangular array: {err}", rule="shape") from err
        if arr.ndim != 2 or arr.size == 0:
            raise StructureError(f"nodal partition matrix must be a non-empty 2-D array, got shape {arr.shape}",
                                 rule="shape")
        if arr.dtype == bool or not np.issubdtype(arr.dtype, np.number) \
                or np.issubdtype(arr.dtype, np.complexfloating):
            raise StructureError(f"nodal partition matrix must hold integers, got dtype {arr.dtype}",
                                 rule="integer")
        bad = ~np.isfinite(arr)
        bad[~bad] = arr[~bad] != np.round(arr[~bad])
        if bad.any():
            row, col = _first_cell(bad)
            raise StructureError(f"entry {arr[row, col]} is not an integer", rule="integer", row=row, column=col)
        return arr.astype(np.int64)

    def __check_root(self):
        root_row = self.__matrix[0]
        others = root_row != root_row[0]
        if others.any():
            col = int(np.flatnonzero(others)[0])
            raise StructureError(f"first stage must hold a single root node, found {root_row[0]} and {root_row[col]}",
                                 rule="root", row=0, column=col)

    def __check_order(self):
        num_rows = self.__matrix.shape[0]
        ids, first = np.unique(self.__matrix.T.ravel(), return_index=True)
        order = np.argsort(first)
        introduced = ids[order]
        expected = np.arange(1, introduced.size + 1)
        wrong = np.flatnonzero(introduced != expected)
        if wrong.size > 0:
            k = wrong[0]
            pos = first[order][k]
            raise StructureError(f"node {introduced[k]} is introduced where node {expected[k]} was expected",
                                 rule="order", row=int(pos % num_rows), column=int(pos // num_rows))
        self.__num_nodes = int(introduced.size)
        self.__stages = np.empty(self.__num_nodes, dtype=np.int64)
        self.__stages[introduced - 1] = first[order] % num_rows

    def __check_stages(self):
        rows = np.arange(self.__matrix.shape[0]).reshape(-1, 1)
        off = self.__stages[self.__matrix - 1] != rows
        if off.any():
            row, col = _first_cell(off)
            node = self.__matrix[row, col]
            raise StructureError(f"node {node} belongs to stage {self.__stages[node - 1]} but also appears here",
                                 rule="stage", row=row, column=col)

    def __check_leaves(self):
        seen = set()
        final_stage = self.__matrix.shape[0] - 1
        for col, node in enumerate(self.__matrix[-1]):
            if node in seen:
                raise StructureError(f"node {node} is shared by several scenarios at the final stage",
                                     rule="leaves", row=final_stage, column=col)
            seen.add(node)

    def __check_refinement(self):
        ancestors = np.zeros(self.__num_nodes, dtype=np.int64)
        ancestors[self.__matrix[0, 0] - 1] = -1  # the root does not have an ancestor
        num_rows, num_cols = self.__matrix.shape
        for row in range(1, num_rows):
            for col in range(num_cols):
                node = self.__matrix[row, col]
                parent = self.__matrix[row - 1, col]
                if ancestors[node - 1] == 0:
                    ancestors[node - 1] = parent
                elif ancestors[node - 1] != parent:
                    raise StructureError(f"node {node} joins scenarios that were apart at the previous stage "
                                         f"(nodes {ancestors[node - 1]} and {parent})",
                                         rule="refinement", row=row, column=col)
        self.__ancestors = ancestors

    def __update(self):
        # Update members
        self.__members = []
        for i in range(self.__num_nodes):
            stage = self.__stages[i]
            self.__members += [np.flatnonzero(self.__matrix[stage] == i + 1)]
        # Update children
        self.__children = []
        for i in range(self.__num_nodes):
            self.__children += [np.flatnonzero(self.__ancestors == i + 1) + 1]

    # --------------------------------------------------------
    # Queries
    # --------------------------------------------------------
    @property
    def matrix(self):
        """
        :return: copy of the nodal partition matrix
        """
        return self.__matrix.copy()

    @property
    def is_strict(self):
        return self.__strict

    @property
    def node_index(self):
        """
        :return: array where `row=stage`, `col=scenario` and `value=position of node` (node id - 1)
        """
        return self.__matrix - 1

    @property
    def num_nodes(self):
        """
        :return: total number of nodes of the tree
        """
        return self.__num_nodes

    @property
    def num_stages(self):
        return self.__matrix.shape[0]

    @property
    def num_scenarios(self):
        return self.__matrix.shape[1]

    @property
    def num_nonleaf_nodes(self):
        return int(np.sum(self.__stages < (self.num_stages - 1)))

    @property
    def num_leaf_nodes(self):
        return self.num_nodes - self.num_nonleaf_nodes

    @property
    def stages(self):
        """
        :return: array where `array position=node id - 1` and `value at position=stage of node`
        """
        return self.__stages.copy()

    @property
    def ancestors(self):
        """
        :return: array where `array position=node id - 1` and `value at position=ancestor id` (-1 for the root)
        """
        return self.__ancestors.copy()

    @property
    def member_counts(self):
        """
        :return: number of scenarios sharing each node, at position `node id - 1`
        """
        return np.array([m.size for m in self.__members], dtype=np.int64)

    def __position(self, node_id):
        if node_id < 1 or node_id > self.__num_nodes:
            raise IndexError(f"node id {node_id} outside 1..{self.__num_nodes}")
        return node_id - 1

    def stage_of_node(self, node_id):
        """
        :param node_id: node id
        :return: stage of given node
        """
        return int(self.__stages[self.__position(node_id)])

    def members_of_node(self, node_id):
        """
        :param node_id: node id
        :return: array of scenarios (columns) sharing the given node
        """
        return self.__members[self.__position(node_id)]

    def ancestor_of_node(self, node_id):
        """
        :param node_id: node id
        :return: id of ancestor node, or -1 for the root
        """
        return int(self.__ancestors[self.__position(node_id)])

    def children_of_node(self, node_id):
        """
        :param node_id: node id
        :return: array of ids of the children of given node
        """
        return self.__children[self.__position(node_id)]

    def nodes_of_stage(self, stage_idx):
        """
        :param stage_idx: index of stage
        :return: array of node ids at given stage
        """
        return np.flatnonzero(self.__stages == stage_idx) + 1

    def __str__(self):
        return f"Nodal Partition\n+ Nodes: {self.num_nodes}\n+ Stages: {self.num_stages}\n" \
               f"+ Scenarios: {self.num_scenarios}"

    def __repr__(self):
        return f"Nodal partition with {self.num_nodes} nodes, {self.num_stages} stages " \
               f"and {self.num_scenarios} scenarios"


class TreeCheck:
    """
    Outcome of `checktree`
    """

    def __init__(self, grouping=None, error=None):
        self.__grouping = grouping
        self.__error = error

    @property
    def valid(self):
        return self.__error is None

    @property
    def grouping(self):
        """
        :return: validated `NodalPartition`, or None if the matrix is illegal
        """
        return self.__grouping

    @property
    def error(self):
        """
        :return: `StructureError` describing the violation, or None if the matrix is legal
        """
        return self.__error

    def __bool__(self):
        return self.valid

    def __repr__(self):
        if self.valid:
            return f"TreeCheck(valid=True, {self.__grouping!r})"
        return f"TreeCheck(valid=False, error={str(self.__error)!r})"


def checktree(matrix, strict=False):
    """
    Check whether a nodal partition matrix describes a legal scenario tree.

    :param matrix: nodal partition matrix, `row=stage` and `col=scenario`
    :param strict: whether every scenario must own a separate node at the final stage [default: False]
    :return: `TreeCheck` holding either the node grouping or the violation
    """
    try:
        grouping = NodalPartition(matrix, strict=strict)
    except StructureError as err:
        return TreeCheck(error=err)
    return TreeCheck(grouping=grouping)


def nodal_partition(branching):
    """
    Nodal partition matrix of a tree with a fixed number of children per node at each stage.

    :param branching: number of children per node at index stage (length = number of stages - 1)
    :return: nodal partition matrix, numbered column by column
    """
    branching = np.array(branching, dtype=np.int64).reshape(-1, )
    if np.any(branching < 1):
        raise StructureError("branching factors must be positive", rule="branching")
    num_stages = branching.size + 1
    nodes_per_stage = np.concatenate(([1], np.cumprod(branching)))
    num_scenarios = int(nodes_per_stage[-1])
    group = np.empty((num_stages, num_scenarios), dtype=np.int64)
    for stage in range(num_stages):
        group[stage] = np.arange(num_scenarios) // (num_scenarios // nodes_per_stage[stage])
    matrix = np.zeros((num_stages, num_scenarios), dtype=np.int64)
    labels = {}
    for col in range(num_scenarios):
        for stage in range(num_stages):
            key = (stage, group[stage, col])
            if key not in labels:
                labels[key] = len(labels) + 1
            matrix[stage, col] = labels[key]
    return matrix
