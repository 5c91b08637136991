"""Invoice inbox: email attachments to a shared invoice sheet."""
