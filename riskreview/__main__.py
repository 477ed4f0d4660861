from riskreview.cli import main

main()
