from computerouter.main import main

main()
