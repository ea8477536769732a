"""
Moderation for ascbot.

- **moderation_pipeline.py**: the staged ban/kick state machine.
- **actions.py**: platform actions (ban, soft ban, kick) the pipeline applies.
- **case_log.py**: case-id allocation, case persistence and audit webhook relay.
- **notifier.py**: best-effort sends whose failures never abort an action.
"""
