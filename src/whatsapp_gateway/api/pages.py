"""HTML pages served by the control surface."""

CONTROL_PAGE_HTML = """<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>WhatsApp Web Authentication</title>
    <style>
      body { font-family: ui-sans-serif, system-ui, sans-serif; text-align: center; padding: 20px; }
      #qr-container { margin: 20px 0; }
      button { padding: 10px 20px; margin: 5px; }
    </style>
  </head>
  <body>
    <h1>WhatsApp Web Authentication</h1>
    <div id="status"></div>
    <div id="qr-container"></div>
    <button id="init-button" onclick="initializeWhatsApp()">Start WhatsApp</button>
    <button id="close-button" onclick="closeWhatsApp()" style="display:none;">Close WhatsApp</button>
    <script>
      function updateStatus(message) {
        document.getElementById('status').innerHTML = '<h2>' + message + '</h2>';
      }

      function showQR(qrCode) {
        document.getElementById('qr-container').innerHTML =
          '<img src="' + qrCode + '" alt="QR Code" />';
      }

      function showButtons(ready) {
        document.getElementById('init-button').style.display = ready ? 'none' : 'inline';
        document.getElementById('close-button').style.display = ready ? 'inline' : 'none';
      }

      function initializeWhatsApp() {
        updateStatus('Starting WhatsApp...');
        fetch('/initialize')
          .then(response => response.json())
          .then(data => {
            updateStatus(data.message || data.error);
            if (data.qr) {
              showQR(data.qr);
            }
            document.getElementById('close-button').style.display = 'inline';
          })
          .catch(error => {
            console.error('Error:', error);
            updateStatus('Could not start WhatsApp');
          });
      }

      function closeWhatsApp() {
        fetch('/close')
          .then(response => response.json())
          .then(data => {
            updateStatus(data.message);
            document.getElementById('qr-container').innerHTML = '';
            showButtons(false);
          });
      }

      setInterval(() => {
        fetch('/status')
          .then(response => response.json())
          .then(data => {
            updateStatus(data.status);
            if (data.isReady) {
              document.getElementById('qr-container').innerHTML = '';
              showButtons(true);
            }
          });
      }, 5000);
    </script>
  </body>
</html>
"""

_INSTANCE_STATUS_HTML = """<h1>WhatsApp Instance Status</h1>
<p>Status: {label}</p>
{close_control}
<script>
  function closeSession() {{
    fetch('/close')
      .then(response => response.json())
      .then(data => {{
        alert(data.message);
        location.reload();
      }});
  }}
</script>
"""

_CLOSE_CONTROL_HTML = '<button onclick="closeSession()">Close session</button>'


def render_instance_status(is_ready: bool) -> str:
    """Render the instance status snippet with a close control when active."""
    return _INSTANCE_STATUS_HTML.format(
        label="Active" if is_ready else "Inactive",
        close_control=_CLOSE_CONTROL_HTML if is_ready else "",
    )
