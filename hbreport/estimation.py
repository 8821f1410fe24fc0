"""
Individual-level utility estimation for choice-based conjoint data.

The report only needs per-respondent coefficients and a fit statistic, so
estimation sits behind a small :class:`Estimator` protocol:

    result = estimator.estimate(design, mcmc_settings)
    result.coefficients   # respondents x predictors
    result.rlh            # root likelihood per respondent

Two backends ship with the package:

1. :class:`GibbsHBEstimator` — hierarchical Bayes multinomial logit.
   Lower level:  beta_i ~ N(alpha, D)  (MNL likelihood per respondent).
   Upper level:  alpha ~ N(0, Sigma_0), D ~ Inverse-Wishart.
   Estimated via Gibbs sampling (conjugate alpha/D updates + MH for betas).
2. :class:`PrecomputedEstimator` — reads ``RBetas.csv`` / ``RLH.csv`` from a
   directory written by an earlier run or by another HB tool.

scipy is imported **lazily** inside the functions that need it to avoid
slow macOS Gatekeeper scans of C extensions at module-import time.
Do NOT add a top-level ``from scipy ...`` import.
"""

# Import modules
from __future__ import annotations

import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from hbreport.design import ALTERNATIVE, CHOICE, RESPONDENT, TASK, DesignMatrix
from hbreport.exceptions import (
    EstimationError,
    MissingRespondentWarning,
    SchemaMismatchError,
)
from hbreport.models import McmcSettings

# =====================================================================
# Interface
# =====================================================================

@dataclass
class EstimationResult:
    """Point estimates for every respondent."""

    coefficients: pd.DataFrame  # index: respondent id, columns: predictors
    rlh: pd.Series  # index: respondent id

    @property
    def respondents(self) -> list:
        return list(self.coefficients.index)


class Estimator(Protocol):
    def estimate(self, design: DesignMatrix, config: McmcSettings) -> EstimationResult:
        ...


# =====================================================================
# Choice data in array form
# =====================================================================

@dataclass
class _ChoiceArrays:
    X: NDArray[np.float64]  # (n_tasks, max_alts, n_predictors)
    available: NDArray[np.bool_]  # (n_tasks, max_alts)
    chosen: NDArray[np.int64]  # (n_tasks,) 0-based chosen alternative
    task_respondent: NDArray[np.int64]  # (n_tasks,) respondent index
    tasks_per_respondent: NDArray[np.float64]  # (n_respondents,)
    respondents: list


def _build_choice_arrays(design: DesignMatrix) -> _ChoiceArrays:
    """Pack the long-format design into padded per-task arrays."""
    frame = design.frame
    respondents = design.respondents
    resp_index = {rid: i for i, rid in enumerate(respondents)}

    task_id = frame.groupby([RESPONDENT, TASK], sort=False).ngroup().to_numpy()
    alt_idx = frame[ALTERNATIVE].to_numpy(dtype=np.int64) - 1
    n_tasks = int(task_id.max()) + 1
    max_alts = int(alt_idx.max()) + 1

    X = np.zeros((n_tasks, max_alts, design.n_predictors))
    available = np.zeros((n_tasks, max_alts), dtype=bool)
    X[task_id, alt_idx] = design.predictors().to_numpy(dtype=np.float64)
    available[task_id, alt_idx] = True

    first_rows = alt_idx == 0
    chosen = np.zeros(n_tasks, dtype=np.int64)
    chosen[task_id[first_rows]] = frame[CHOICE].to_numpy(dtype=np.int64)[first_rows] - 1

    task_respondent = np.zeros(n_tasks, dtype=np.int64)
    task_respondent[task_id] = frame[RESPONDENT].map(resp_index).to_numpy(dtype=np.int64)
    tasks_per_respondent = np.bincount(task_respondent, minlength=len(respondents)).astype(float)

    return _ChoiceArrays(
        X=X,
        available=available,
        chosen=chosen,
        task_respondent=task_respondent,
        tasks_per_respondent=tasks_per_respondent,
        respondents=respondents,
    )


def _respondent_log_likelihood(
    betas: NDArray[np.float64],
    data: _ChoiceArrays,
) -> NDArray[np.float64]:
    """
    MNL log-likelihood per respondent.

    *betas* has one row per respondent; each task is scored with the row
    of the respondent who answered it.
    """
    from scipy.special import logsumexp  # lazy — see module docstring

    utilities = np.einsum("tjp,tp->tj", data.X, betas[data.task_respondent])
    utilities = np.where(data.available, utilities, -np.inf)
    chosen_u = utilities[np.arange(len(data.chosen)), data.chosen]
    ll_task = chosen_u - logsumexp(utilities, axis=1)
    return np.bincount(
        data.task_respondent, weights=ll_task, minlength=len(data.respondents),
    )


def _pooled_negative_log_likelihood(
    beta: NDArray[np.float64],
    data: _ChoiceArrays,
) -> float:
    """Negative log-likelihood with one beta shared by everyone (for minimisation)."""
    betas = np.broadcast_to(beta, (len(data.respondents), beta.shape[0]))
    return -float(np.sum(_respondent_log_likelihood(betas, data)))


# =====================================================================
# Hierarchical Bayes (multi-respondent Gibbs sampler)
# =====================================================================

class GibbsHBEstimator:
    """
    Hierarchical Bayes MNL estimated by Gibbs sampling.

    Gibbs sweep (each iteration):
      (a) Draw alpha | {beta_i}, D           — conjugate Normal update
      (b) Draw D     | {beta_i}, alpha       — conjugate Inverse-Wishart
      (c) Draw beta_i | alpha, D, data_i     — MH step, all respondents at once

    The first ``total_iterations - retained_iterations`` sweeps are burn-in,
    during which proposal scales are adapted.  Every ``keep``-th retained
    draw is averaged into the point estimates.

    Parameters
    ----------
    prior_variance : variance of the N(0, prior_variance * I) prior on alpha
    adapt_every : burn-in interval between proposal-scale adjustments
    """

    def __init__(self, *, prior_variance: float = 100.0, adapt_every: int = 200) -> None:
        self.prior_variance = prior_variance
        self.adapt_every = adapt_every

    def estimate(self, design: DesignMatrix, config: McmcSettings) -> EstimationResult:
        from scipy.optimize import minimize  # lazy
        from scipy.stats import invwishart   # lazy

        n_params = design.n_predictors
        xcoding = config.coding_for(n_params)
        if len(xcoding) != n_params:
            raise SchemaMismatchError(
                f"xcoding lists {len(xcoding)} predictor codes but the design "
                f"has {n_params} predictors"
            )
        unsupported = sorted({c for c in xcoding if c != 1})
        if unsupported:
            raise EstimationError(
                f"Coding mode(s) {unsupported} are not supported by the Gibbs "
                "sampler; encode levels with 'coding: effects' in the study "
                "config and use xcoding 1 for every predictor"
            )

        data = _build_choice_arrays(design)
        n_resp = len(data.respondents)
        if n_resp < 2:
            raise EstimationError(
                f"Hierarchical Bayes requires >= 2 respondents (found {n_resp})"
            )

        rng = np.random.default_rng(config.seed)
        burn_in = config.total_iterations - config.retained_iterations

        # ── Priors ──────────────────────────────────────────────────────
        mu_0 = np.zeros(n_params)
        Sigma_0_inv = np.eye(n_params) / self.prior_variance
        nu_0 = n_params + 3
        V_0 = np.eye(n_params)

        # ── Initialise every beta at the pooled MNL estimate ────────────
        opt = minimize(
            _pooled_negative_log_likelihood,
            x0=np.zeros(n_params),
            args=(data,),
            method="L-BFGS-B",
        )
        start = opt.x if np.all(np.isfinite(opt.x)) else np.zeros(n_params)
        betas = np.tile(start, (n_resp, 1))
        D = np.eye(n_params)

        # ── MH proposal scales per respondent ───────────────────────────
        prop_scales = np.full(n_resp, 0.1)
        accept_cts = np.zeros(n_resp)
        ll_cur = _respondent_log_likelihood(betas, data)

        # ── Running sums over retained draws ────────────────────────────
        beta_sum = np.zeros_like(betas)
        rlh_sum = np.zeros(n_resp)
        n_saved = 0

        for it in range(config.total_iterations):
            # (a) Draw alpha | {beta_i}, D
            D_inv = np.linalg.inv(D + 1e-6 * np.eye(n_params))
            Sigma_star = np.linalg.inv(n_resp * D_inv + Sigma_0_inv)
            alpha_star = Sigma_star @ (D_inv @ betas.sum(axis=0) + Sigma_0_inv @ mu_0)
            alpha = rng.multivariate_normal(alpha_star, Sigma_star)

            # (b) Draw D | {beta_i}, alpha
            diff = betas - alpha[np.newaxis, :]
            D_draw = invwishart.rvs(
                df=nu_0 + n_resp, scale=V_0 + diff.T @ diff, random_state=rng,
            )
            D = np.atleast_2d(D_draw)

            # (c) Draw each beta_i via MH
            D_inv = np.linalg.inv(D + 1e-6 * np.eye(n_params))
            proposal = betas + rng.normal(size=betas.shape) * prop_scales[:, np.newaxis]
            ll_prop = _respondent_log_likelihood(proposal, data)

            d_cur = betas - alpha
            d_prop = proposal - alpha
            lp_cur = -0.5 * np.einsum("ip,pq,iq->i", d_cur, D_inv, d_cur)
            lp_prop = -0.5 * np.einsum("ip,pq,iq->i", d_prop, D_inv, d_prop)

            accept = np.log(rng.random(n_resp)) < (ll_prop + lp_prop) - (ll_cur + lp_cur)
            betas[accept] = proposal[accept]
            ll_cur[accept] = ll_prop[accept]
            accept_cts += accept

            # Adapt proposal scales during burn-in
            if it < burn_in and it > 0 and it % self.adapt_every == 0:
                rate = accept_cts / (it + 1)
                prop_scales[rate < 0.2] *= 0.8
                prop_scales[rate > 0.5] *= 1.2

            if it >= burn_in and (it - burn_in) % config.keep == 0:
                beta_sum += betas
                rlh_sum += np.exp(ll_cur / data.tasks_per_respondent)
                n_saved += 1

        index = pd.Index(data.respondents, name="ID")
        return EstimationResult(
            coefficients=pd.DataFrame(
                beta_sum / n_saved, index=index, columns=design.predictor_names,
            ),
            rlh=pd.Series(rlh_sum / n_saved, index=index, name="RLH"),
        )


# =====================================================================
# Pre-computed estimator output
# =====================================================================

class PrecomputedEstimator:
    """Serve estimates already written to *directory* instead of sampling."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def estimate(self, design: DesignMatrix, config: McmcSettings) -> EstimationResult:
        from hbreport.io import load_estimation_output  # lazy, io imports this module

        result = load_estimation_output(self.directory, design.predictor_names)

        missing = [rid for rid in design.respondents if rid not in result.coefficients.index]
        if missing:
            warnings.warn(
                f"{len(missing)} respondent(s) have no estimates in "
                f"{self.directory} and are skipped: {missing[:10]}",
                MissingRespondentWarning,
                stacklevel=2,
            )
        keep = [rid for rid in design.respondents if rid in result.coefficients.index]
        return EstimationResult(
            coefficients=result.coefficients.loc[keep],
            rlh=result.rlh.loc[keep],
        )
