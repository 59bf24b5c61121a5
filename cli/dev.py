"""Local notifier launcher."""


def main() -> None:
    """Run the notifier with its health and metrics server."""
    from invoice_notifier.main import run

    run()


if __name__ == "__main__":
    main()
