"""Engine services: artifact extraction, stage execution, synthesis, control."""
