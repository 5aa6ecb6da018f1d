from cmdpipe.main import main

main()
