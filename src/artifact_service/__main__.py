from artifact_service.main import main

main()
