# ABOUTME: Goal tracker package: plan extraction plus goal/step stores and coordinators.
# ABOUTME: Use extract_plan() standalone; actions.* for identity-checked operations.

from goal_tracker.extractor import extract_plan, has_plan_content

__all__ = ["extract_plan", "has_plan_content"]
