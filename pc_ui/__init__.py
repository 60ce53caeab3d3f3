"""User-facing CLI for packer-converge."""
