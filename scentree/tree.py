import numpy as np
from .errors import ConfigError
from .structure import NodalPartition
from .gas import NeuralGas, assign_probabilities, initial_values, realizations, scenario_paths


class ScenarioTree:
    """
    Scenario tree fitted to data: nodal structure, node values and scenario probabilities
    """

    def __init__(self, grouping, values, probabilities, counts, initial=None, univariate=True):
        """
        :param grouping: `NodalPartition` of the tree
        :param values: array where `row position=node id - 1` and `col position=dimension`
        :param probabilities: array where `array position=scenario` and `value at position=probability`
        :param counts: array where `array position=scenario` and `value at position=number of closest realizations`
        :param initial: (optional) node values before fitting, same layout as `values`
        :param univariate: whether node values are scalars

        Note: avoid using this constructor directly; use a factory instead.
        """
        self.__grouping = grouping
        self.__values = np.asarray(values, dtype=np.float64).reshape(grouping.num_nodes, -1)
        self.__probability = np.asarray(probabilities, dtype=np.float64)
        self.__counts = np.asarray(counts, dtype=np.int64)
        self.__initial = None if initial is None else \
            np.asarray(initial, dtype=np.float64).reshape(self.__values.shape)
        self.__univariate = univariate and self.__values.shape[1] == 1

    @property
    def grouping(self):
        return self.__grouping

    @property
    def structure(self):
        """
        :return: nodal partition matrix the tree was built with
        """
        return self.__grouping.matrix

    @property
    def values(self):
        """
        :return: node values array where `row=node id - 1` and `col=dimension`
        """
        return self.__values.copy()

    @property
    def initial_values(self):
        """
        :return: node values before fitting (same layout as `values`), if known
        """
        return None if self.__initial is None else self.__initial.copy()

    @property
    def node_values(self):
        """
        :return: dict `node id -> value` (float for univariate trees, array otherwise)
        """
        if self.__univariate:
            return {i + 1: float(v[0]) for i, v in enumerate(self.__values)}
        return {i + 1: v.copy() for i, v in enumerate(self.__values)}

    @property
    def probabilities(self):
        """
        :return: probability of each scenario, aligned with the columns of `structure`
        """
        return self.__probability.copy()

    @property
    def counts(self):
        """
        :return: number of realizations closest to each scenario
        """
        return self.__counts.copy()

    @property
    def is_univariate(self):
        return self.__univariate

    @property
    def num_nodes(self):
        return self.__grouping.num_nodes

    @property
    def num_nonleaf_nodes(self):
        return self.__grouping.num_nonleaf_nodes

    @property
    def num_leaf_nodes(self):
        return self.__grouping.num_leaf_nodes

    @property
    def num_stages(self):
        return self.__grouping.num_stages

    @property
    def num_scenarios(self):
        return self.__grouping.num_scenarios

    def ancestor_of_node(self, node_id):
        return self.__grouping.ancestor_of_node(node_id)

    def children_of_node(self, node_id):
        return self.__grouping.children_of_node(node_id)

    def stage_of_node(self, node_id):
        return self.__grouping.stage_of_node(node_id)

    def nodes_of_stage(self, stage_idx):
        return self.__grouping.nodes_of_stage(stage_idx)

    def value_of_node(self, node_id):
        """
        :param node_id: node id
        :return: fitted value at the given node
        """
        if self.__univariate:
            return float(self.__values[node_id - 1, 0])
        return self.__values[node_id - 1].copy()

    def probability_of_node(self, node_id):
        """
        :param node_id: node id
        :return: probability to visit the given node
        """
        return float(np.sum(self.__probability[self.__grouping.members_of_node(node_id)]))

    def cond_prob_of_children_of_node(self, node_id):
        """
        :param node_id: node id
        :return: array of conditional probabilities of the children of a given node (zeros if never visited)
        """
        children = self.children_of_node(node_id)
        prob_anc = self.probability_of_node(node_id)
        prob_ch = np.array([self.probability_of_node(ch) for ch in children])
        if prob_anc == 0:
            return np.zeros(prob_ch.shape)
        return prob_ch / prob_anc

    def get_scenarios(self):
        """
        Return list of scenarios as arrays of node ids.
        """
        matrix = self.__grouping.matrix
        return [matrix[:, s] for s in range(self.num_scenarios)]

    def scenario_values(self):
        """
        :return: array [time x scenarios] (or [time x scenarios x dimension]) of scenario values
        """
        paths = scenario_paths(self.__grouping, self.__values)
        return paths[:, :, 0] if self.__univariate else paths

    def __str__(self):
        return f"Scenario Tree\n+ Nodes: {self.num_nodes}\n+ Stages: {self.num_stages}\n" \
               f"+ Scenarios: {self.num_scenarios}"

    def __repr__(self):
        return f"Scenario tree with {self.num_nodes} nodes, {self.num_stages} stages " \
               f"and {self.num_scenarios} scenarios"


class FromData:
    """
    Factory class to construct scenario trees from data by neural gas, under a given nodal partition
    """

    def __init__(self, data, structure, strict=None):
        """
        :param data: realizations, [time x samples] or [time x samples x dimension]
        :param structure: nodal partition matrix [time x scenarios] or `NodalPartition`
        :param strict: whether every scenario must own a separate node at the final stage
            [default: None, i.e., False for a matrix and the flag of a given `NodalPartition`]
        """
        if isinstance(structure, NodalPartition):
            if strict is not None and bool(strict) != structure.is_strict:
                raise ConfigError(f"strict={strict} conflicts with a nodal partition validated with "
                                  f"strict={structure.is_strict}")
            self.__grouping = structure
        else:
            self.__grouping = NodalPartition(structure, strict=bool(strict))
        self.__data = realizations(data, self.__grouping.num_stages)
        self.__univariate = np.ndim(data) == 2
        self.__lambda0 = 10.
        self.__lambdaf = 0.01
        self.__eps0 = 0.5
        self.__epsf = 0.05
        self.__j_max = 40000
        self.__seed = None
        self.__callback = None
        self.__checkpoint = 1000
        self.__verbose = False

    def with_learning_rate(self, eps0, epsf):
        self.__eps0 = eps0
        self.__epsf = epsf
        return self

    def with_neighbourhood(self, lambda0, lambdaf):
        self.__lambda0 = lambda0
        self.__lambdaf = lambdaf
        return self

    def with_iterations(self, j_max):
        self.__j_max = j_max
        return self

    def with_seed(self, seed):
        """
        :param seed: None, int or `numpy.random.Generator`
        """
        self.__seed = seed
        return self

    def with_progress(self, callback, checkpoint=1000):
        self.__callback = callback
        self.__checkpoint = checkpoint
        return self

    def with_verbose(self, enable=True):
        self.__verbose = enable
        return self

    def build(self):
        """
        Generates a scenario tree from the given data.
        """
        gas = NeuralGas(lambda0=self.__lambda0, lambdaf=self.__lambdaf,
                        eps0=self.__eps0, epsf=self.__epsf, j_max=self.__j_max)
        rng = np.random.default_rng(self.__seed)
        start = initial_values(self.__data, self.__grouping, rng)
        if self.__verbose:
            print(f"Fitting tree ({gas.j_max} iterations)...")
        values = gas.fit(self.__data, self.__grouping, start, rng,
                         callback=self.__callback, checkpoint=self.__checkpoint, verbose=self.__verbose)
        if self.__verbose:
            print("Assigning probabilities...")
        probs, counts = assign_probabilities(self.__data, self.__grouping, values)
        return ScenarioTree(self.__grouping, values, probs, counts, initial=start, univariate=self.__univariate)


def buildtree(data, structure, lambda0=10., lambdaf=0.01, eps0=0.5, epsf=0.05, j_max=40000, seed=None,
              strict=None, verbose=False):
    """
    Fit a scenario tree with the given nodal partition to a set of realizations.

    :param data: realizations, [time x samples] or [time x samples x dimension]
    :param structure: nodal partition matrix [time x scenarios]
    :param lambda0: initial neighbourhood width [default: 10]
    :param lambdaf: final neighbourhood width [default: 0.01]
    :param eps0: initial learning rate [default: 0.5]
    :param epsf: final learning rate [default: 0.05]
    :param j_max: number of iterations [default: 40000]
    :param seed: None, int or `numpy.random.Generator` [default: None]
    :param strict: whether every scenario must own a separate node at the final stage [default: None, i.e., False]
    :param verbose: whether to print progress [default: False]
    :return: `ScenarioTree`
    """
    return (
        FromData(data, structure, strict=strict)
        .with_neighbourhood(lambda0, lambdaf)
        .with_learning_rate(eps0, epsf)
        .with_iterations(j_max)
        .with_seed(seed)
        .with_verbose(verbose)
    ).build()
