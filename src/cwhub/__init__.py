"""Courseware Hub: courseware catalogue with session-gated access and premium upgrades."""
