"""
orgsync.engine.analytics — Member Engagement Models
====================================================

Turns per-member reward activity into an engagement picture for one
organization:

* an **engagement score**, a weighted sum of the member's reward actions;
* an **RSVP rate**, the share of the organization's events they RSVPed to;
* a **segment** (``high`` / ``medium`` / ``low``) from k-means over the
  standardized ``[score, rsvp_rate]`` pair;
* an **RSVP probability** from a logistic regression trained on every
  (member, event) pair with the standardized action counts as features.

The two models only run with at least :data:`MIN_MEMBERS` active members.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

import numpy as np
from sklearn.cluster import KMeans
from sklearn.linear_model import LogisticRegression
from sklearn.preprocessing import StandardScaler

ACTIONS = ("view", "like", "poll", "feedback", "rsvp", "register", "evaluate")
SCORE_WEIGHTS = {"view": 1, "like": 5, "poll": 10, "feedback": 20, "register": 20, "evaluate": 50}
MIN_MEMBERS = 10
SEGMENTS = ("high", "medium", "low")


@dataclass(slots=True)
class MemberActivity:
    user_id: str
    name: str = ""
    counts: dict[str, int] = field(default_factory=dict)
    rsvp_events: set[str] = field(default_factory=set)
    engagement_score: int = 0
    rsvp_rate: float = 0.0
    segment: str | None = None
    rsvp_probability: float | None = None

    def feature_row(self) -> list[int]:
        return [self.counts.get(action, 0) for action in ACTIONS]

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "name": self.name,
            "counts": {action: self.counts.get(action, 0) for action in ACTIONS},
            "rsvps": len(self.rsvp_events),
            "engagement_score": self.engagement_score,
            "rsvp_rate": round(self.rsvp_rate, 2),
            "segment": self.segment,
            "rsvp_probability": (
                None if self.rsvp_probability is None else round(self.rsvp_probability, 4)
            ),
        }


def engagement_score(counts: Mapping[str, int]) -> int:
    return sum(weight * counts.get(action, 0) for action, weight in SCORE_WEIGHTS.items())


def rsvp_rate(rsvps: int, total_events: int) -> float:
    """Percentage of *total_events* RSVPed to; 0 when there are no events."""
    if total_events <= 0:
        return 0.0
    return rsvps / total_events * 100


def segment_members(features: np.ndarray, random_state: int = 0) -> list[str]:
    """Cluster rows of ``[score, rsvp_rate]`` into the three segments.

    Clusters are named by the mean engagement score of their members, ties
    broken by mean RSVP rate, so ``high`` always holds the most engaged group.
    """
    scaled = StandardScaler().fit_transform(features)
    labels = KMeans(n_clusters=len(SEGMENTS), n_init=10, random_state=random_state).fit_predict(scaled)
    means = {label: tuple(features[labels == label].mean(axis=0)) for label in set(labels.tolist())}
    ordered = sorted(means, key=lambda label: means[label], reverse=True)
    names = {label: SEGMENTS[i] for i, label in enumerate(ordered)}
    return [names[label] for label in labels.tolist()]


def rsvp_probabilities(
    counts: np.ndarray,
    rsvp_events: Sequence[set[str]],
    event_ids: Sequence[str],
) -> np.ndarray:
    """Mean predicted probability that each member RSVPs to an event.

    *counts* holds one row of :data:`ACTIONS` counts per member; the
    training set repeats each row once per event, labelled with whether
    that member RSVPed to it.  A single-class label set has nothing to
    learn, so every member gets the observed RSVP share.
    """
    n_members, n_events = counts.shape[0], len(event_ids)
    labels = np.array(
        [[1 if event in rsvped else 0 for event in event_ids] for rsvped in rsvp_events],
        dtype=int,
    ).reshape(n_members, n_events)
    if labels.min() == labels.max():
        return np.full(n_members, float(labels.mean()))

    scaled = StandardScaler().fit_transform(counts.astype(float))
    X = np.repeat(scaled, n_events, axis=0)
    y = labels.reshape(-1)
    model = LogisticRegression(max_iter=1000).fit(X, y)
    per_pair = model.predict_proba(X)[:, 1].reshape(n_members, n_events)
    return per_pair.mean(axis=1)


def analyze_members(members: list[MemberActivity], event_ids: Sequence[str]) -> bool:
    """Fill in score, rate, segment and probability on each member.

    Returns whether the models ran (enough members were present).
    """
    total_events = len(event_ids)
    for member in members:
        member.engagement_score = engagement_score(member.counts)
        member.rsvp_rate = rsvp_rate(len(member.rsvp_events), total_events)
    if len(members) < MIN_MEMBERS:
        return False

    features = np.array([[m.engagement_score, m.rsvp_rate] for m in members], dtype=float)
    for member, segment in zip(members, segment_members(features)):
        member.segment = segment

    counts = np.array([m.feature_row() for m in members], dtype=float)
    probabilities = rsvp_probabilities(counts, [m.rsvp_events for m in members], event_ids)
    for member, probability in zip(members, probabilities.tolist()):
        member.rsvp_probability = probability
    return True
