"""Default check and probe commands for the heartbeat.

Installed as `warden-check-health` and `warden-agent-probe`; both exit 0 on
success and 1 otherwise, which is all the heartbeat looks at.
"""
