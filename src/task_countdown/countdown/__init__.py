"""
Countdown & alert engine.

Components:
- selector.py: picks the nearest started deadline
- zones.py: classifies the time left into an escalation zone
- alerts.py: alarm / chime / notification side effects with de-duplication
- engine.py: fixed-cadence tick loop
"""
