from telecode import main

main()
