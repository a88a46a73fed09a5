from finance_tracker.main import main

main()
