from native_bindgen.cli import main

main()
