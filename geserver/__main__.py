from geserver.app import main

main()
