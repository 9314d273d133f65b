"""Command line interface (`python -m order_recon.cli`)."""
