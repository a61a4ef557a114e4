from filewatch.cli import main

main()
