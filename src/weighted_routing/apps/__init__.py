"""Demonstration services deployed as the reference topology's replicas."""
