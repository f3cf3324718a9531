from mailroom import create_app

app = create_app()

if __name__ == "__main__":
    # The reloader would start a second scheduler in the child process
    app.run(debug=True, port=8000, use_reloader=False)
