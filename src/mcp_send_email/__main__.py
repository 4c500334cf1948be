from mcp_send_email.cli import main

if __name__ == "__main__":
    main()
