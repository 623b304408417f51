from moraine.program import main

main()
