from mtt.cli import main

main()
