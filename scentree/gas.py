import warnings
import numpy as np
from scipy.stats import rankdata
from .errors import AnnealingWarning, ConfigError, DataError, FittingError


def realizations(data, num_stages=None):
    """
    Realization data as a float array of shape [time x samples x dimension].

    :param data: array [time x samples] or [time x samples x dimension]
    :param num_stages: number of stages the data must cover [default: None, i.e., any]
    :return: float array [time x samples x dimension]
    """
    try:
        arr = np.asarray(data, dtype=np.float64)
    except (TypeError, ValueError) as err:
        raise DataError(f"realizations are not numeric: {err}") from err
    if arr.ndim == 2:
        arr = arr.reshape(arr.shape + (1,))
    if arr.ndim != 3:
        raise DataError(f"realizations must be a [time x samples] or [time x samples x dimension] array, "
                        f"got shape {arr.shape}")
    if arr.size == 0:
        raise DataError(f"realizations are empty, got shape {arr.shape}")
    if not np.all(np.isfinite(arr)):
        t, k = np.argwhere(~np.isfinite(arr))[0][:2]
        raise DataError(f"realizations must be finite, found {arr[t, k].ravel()} at time {t}, sample {k}")
    if num_stages is not None and arr.shape[0] != num_stages:
        raise DataError(f"realizations cover {arr.shape[0]} time steps but the structure has {num_stages} stages")
    return arr


def scenario_paths(grouping, values):
    """
    :param grouping: `NodalPartition`
    :param values: node values [nodes x dimension]
    :return: array [time x scenarios x dimension] of the value of each scenario at each stage
    """
    return np.asarray(values)[grouping.node_index]


def node_means(grouping, paths):
    """
    Average per node over the scenarios sharing it.

    :param grouping: `NodalPartition`
    :param paths: array [time x scenarios x dimension]
    :return: array [nodes x dimension]
    """
    num_stages, num_scenarios, dim = paths.shape
    sums = np.zeros((grouping.num_nodes, dim))
    np.add.at(sums, grouping.node_index.ravel(), paths.reshape(num_stages * num_scenarios, dim))
    return sums / grouping.member_counts.reshape(-1, 1)


def initial_values(data, grouping, rng):
    """
    Starting node values, seeded by randomly drawn realizations.

    :param data: realizations [time x samples (x dimension)]
    :param grouping: `NodalPartition`
    :param rng: numpy random generator
    :return: array [nodes x dimension]
    """
    data = realizations(data, grouping.num_stages)
    num_samples = data.shape[1]
    num_scenarios = grouping.num_scenarios
    replace = num_samples < num_scenarios
    if replace:
        warnings.warn(f"Only {num_samples} realizations for {num_scenarios} scenarios; "
                      f"seeding with replacement.", RuntimeWarning)
    picks = rng.choice(num_samples, size=num_scenarios, replace=replace)
    return node_means(grouping, data[:, picks, :])


def rank_scenarios(distances):
    """
    :param distances: distance of each scenario to a realization
    :return: rank of each scenario (1 = closest); equal distances are ranked by lowest scenario index first
    """
    return rankdata(distances, method="ordinal").astype(np.float64)


def assign_probabilities(data, grouping, values):
    """
    Probability of each scenario as the share of realizations closest to it.

    :param data: realizations [time x samples (x dimension)]
    :param grouping: `NodalPartition`
    :param values: node values [nodes x dimension]
    :return: probabilities (size: num_scenarios), realization counts (size: num_scenarios)
    """
    data = realizations(data, grouping.num_stages)
    paths = scenario_paths(grouping, values)
    num_samples = data.shape[1]
    best = np.full(num_samples, np.inf)
    closest = np.zeros(num_samples, dtype=np.int64)
    # One scenario at a time, so memory grows with samples and not with samples x scenarios
    for scenario in range(grouping.num_scenarios):
        dist = np.sqrt(np.sum((data - paths[:, scenario, None, :]) ** 2, axis=(0, 2)))
        if not np.all(np.isfinite(dist)):
            k = int(np.flatnonzero(~np.isfinite(dist))[0])
            raise FittingError(f"non-finite distance between realization {k} and scenario {scenario}")
        nearer = dist < best  # strict, so the lowest scenario index wins on ties
        best[nearer] = dist[nearer]
        closest[nearer] = scenario
    counts = np.bincount(closest, minlength=grouping.num_scenarios)
    return counts / num_samples, counts


class NeuralGas:
    """
    Neural gas fitting of node values under a fixed nodal partition
    """

    def __init__(self, lambda0=10., lambdaf=0.01, eps0=0.5, epsf=0.05, j_max=40000):
        """
        :param lambda0: initial neighbourhood width
        :param lambdaf: final neighbourhood width
        :param eps0: initial learning rate
        :param epsf: final learning rate
        :param j_max: number of iterations
        """
        self.__lambda0 = self.__check_positive("lambda0", lambda0)
        self.__lambdaf = self.__check_positive("lambdaf", lambdaf)
        self.__eps0 = self.__check_positive("eps0", eps0)
        self.__epsf = self.__check_positive("epsf", epsf)
        self.__j_max = self.__check_iterations("j_max", j_max)
        if self.__eps0 < self.__epsf:
            warnings.warn(f"eps0 ({eps0}) < epsf ({epsf}): the learning rate grows over the run", AnnealingWarning)
        if self.__lambda0 < self.__lambdaf:
            warnings.warn(f"lambda0 ({lambda0}) < lambdaf ({lambdaf}): the neighbourhood widens over the run",
                          AnnealingWarning)

    @staticmethod
    def __check_positive(name, value):
        try:
            value = float(value)
        except (TypeError, ValueError) as err:
            raise ConfigError(f"{name} must be a number, got {value!r}") from err
        if not np.isfinite(value) or value <= 0:
            raise ConfigError(f"{name} must be positive and finite, got {value}")
        return value

    @staticmethod
    def __check_iterations(name, value):
        if isinstance(value, (bool, np.bool_)) or not isinstance(value, (int, np.integer)):
            raise ConfigError(f"{name} must be an integer, got {value!r}")
        if value <= 0:
            raise ConfigError(f"{name} must be positive, got {value}")
        return int(value)

    @property
    def j_max(self):
        return self.__j_max

    def epsilon(self, j):
        """
        :param j: iteration
        :return: learning rate at iteration j
        """
        return self.__eps0 * (self.__epsf / self.__eps0) ** (j / self.__j_max)

    def neighbourhood(self, j):
        """
        :param j: iteration
        :return: neighbourhood width (lambda) at iteration j
        """
        return self.__lambda0 * (self.__lambdaf / self.__lambda0) ** (j / self.__j_max)

    def fit(self, data, grouping, values, rng, callback=None, checkpoint=1000, verbose=False):
        """
        Run the annealed update loop.

        :param data: realizations [time x samples (x dimension)]
        :param grouping: `NodalPartition`
        :param values: starting node values [nodes x dimension] (not modified)
        :param rng: numpy random generator
        :param callback: (optional) called as `callback(j, values)` every `checkpoint` iterations;
            returning False cancels the run
        :param checkpoint: iterations between progress reports [default: 1000]
        :param verbose: whether to print progress [default: False]
        :return: fitted node values [nodes x dimension]
        """
        if isinstance(checkpoint, (bool, np.bool_)) or not isinstance(checkpoint, (int, np.integer)) \
                or checkpoint <= 0:
            raise ConfigError(f"checkpoint must be a positive integer, got {checkpoint!r}")
        data = realizations(data, grouping.num_stages)
        num_stages, num_samples, dim = data.shape
        values = np.array(values, dtype=np.float64).reshape(grouping.num_nodes, dim)
        node_index = grouping.node_index
        cell_nodes = node_index.ravel()
        cell_scenarios = np.tile(np.arange(grouping.num_scenarios), num_stages)
        counts = grouping.member_counts
        stages = grouping.stages
        for j in range(1, self.__j_max + 1):
            k = rng.integers(num_samples)
            x = data[:, k, :]
            dist = np.sqrt(np.sum((values[node_index] - x[:, None, :]) ** 2, axis=(0, 2)))
            if not np.all(np.isfinite(dist)):
                raise FittingError(f"non-finite distance at iteration {j} (realization {k})")
            h = np.exp(-rank_scenarios(dist) / self.neighbourhood(j))
            mean_h = np.bincount(cell_nodes, weights=h[cell_scenarios], minlength=grouping.num_nodes) / counts
            # All nodes move from the same snapshot
            values = values + self.epsilon(j) * mean_h.reshape(-1, 1) * (x[stages] - values)
            if j % checkpoint == 0:
                if verbose:
                    print(f"Iteration {j}/{self.__j_max}...")
                if callback is not None and callback(j, values.copy()) is False:
                    raise FittingError(f"fitting cancelled at iteration {j}")
        return values

    def __repr__(self):
        return f"NeuralGas(lambda0={self.__lambda0}, lambdaf={self.__lambdaf}, " \
               f"eps0={self.__eps0}, epsf={self.__epsf}, j_max={self.__j_max})"
