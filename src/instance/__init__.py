"""Instance rollout tracking.

Tracks the plan/phase/step status of instances and decides which plan
must run next on every reconciliation pass.
"""
