from finance_tracker.cli import ExpenseTrackerCLI
from finance_tracker.config import Config
from finance_tracker.logging_config import setup_logging
from finance_tracker.storage import JsonStore


def main():
    config = Config()
    logger = setup_logging(config)
    store = JsonStore(config.save_path)
    logger.info("Opening save file %s", store.path)

    try:
        ExpenseTrackerCLI(store).cmdloop()
    except KeyboardInterrupt:
        print("\nGoodbye!")


if __name__ == "__main__":
    main()
